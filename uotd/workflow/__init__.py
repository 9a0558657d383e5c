"""
Recommendation lifecycle and announcement assembly.

Modules
-------
recommendation_workflow : RecommendationWorkflow (create / approve / reject /
                          expire / auto-publish) + StateConflict.
announcements           : build_title() + build_content() + builders for
                          recommendation and scheduled announcements.
"""
