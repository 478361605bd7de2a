"""
Seller forecast-calibration scoring.

Modules
-------
reliability : ScoredDeal + ReliabilityScore dataclasses, resolve_scored_deal()
              (frozen evaluation -> probability history -> exclusion),
              compute_reliability(), score_seller_reliability(),
              score_all_sellers(), latest_probability_lookup().
logloss     : LogLossRow + compute_logloss_reliability() — log loss measured
              against the binary-entropy baseline of the global win rate.

Pure functions, no DB or I/O.
"""
