"""
Seller race (leaderboard) engine.

Modules
-------
ranker  : RankedRaceItem + rank_race_items() — competition ranking with
          medals and a shared bucket for non-positive values.
results : build_monthly_race_results() + tally_medals()
          + group_races_by_period() — monthly races from closed-won deals.
"""
