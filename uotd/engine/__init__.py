"""
Weather recommendation engine: pure functions, no DB or I/O.

Modules
-------
twilight        : get_twilight_status() + parse_clock_time().
forecast_window : get_forecast_for_window() — hourly series → one sample.
rule_evaluator  : find_matching_rules() (ACCUMULATE / FIRST_MATCH),
                  evaluate_accessory_rules(), select_uniform(),
                  describe_conditions(), format_accessories().
defaults        : DEFAULT_ACCESSORY_RULES used when the store holds none.
"""
