"""
CLI reporting layer.

Modules
-------
formatters : format_forecast_summary(), format_leaderboard(),
             format_correlation(), format_postpone_table() — ASCII output.
export     : export_to_json() + export_to_csv() — result files on disk.
"""
