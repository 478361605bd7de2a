"""
Small-sample seller analytics.

Modules
-------
correlation : pearson_correlation() + correlate_metrics() — Pearson's r over
              two seller metrics with scatter-plot coordinates.
postpone    : PostponeBucket + bucket_postpone_probability() — empirical
              postpone/cancel rate by client company size.
performance : SellerPerformance + build_seller_performance()
              + build_correlation_samples() — HR + race history rows.
"""
