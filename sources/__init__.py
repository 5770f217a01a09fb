"""
Fetch layer for scorecard.

Thin, synchronous clients for the systems the weekly reports read from:
  - Ashby HQ (recruiting applications)
  - GitHub (repositories, labelled issues)
  - Datum Cloud audit logs (via the datumctl CLI)

Clients return plain dataclasses with UTC timestamps; they never bucket or
render anything.
"""
