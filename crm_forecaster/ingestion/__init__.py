"""
Boundary loading of CRM record exports.

Modules
-------
records : load_records() + typed wrappers (load_deals, load_meetings, ...) —
          JSON/CSV files into validated pydantic models, errors reported in bulk.
"""
