"""
Revenue forecast aggregation.

Modules
-------
aggregator : SellerAggregate / SellerForecast / FunnelRow / ForecastSummary
             dataclasses + group_by_seller() + aggregate_forecast()
             + build_seller_forecast() — pure functions, no DB or I/O.
"""
