"""
Ingestion layer: the weather provider client.

Submodules:
  weather_client — WeatherAPI.com forecast client plus the offline fixture
                   report used when no API key is configured.

Credential placement (.env, gitignored):
  UOTD_WEATHER_API_KEY — WeatherAPI.com key (fixture data when unset)
"""
