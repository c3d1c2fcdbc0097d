"""
News Vote API Service.

Community moderation of news items by voting:
- Users submit news items for review
- Other users vote each item Fake or Not Fake, one valid vote per user
- Valid votes are aggregated into an authoritative Pending / Fake / Not Fake status
- Administrators invalidate abusive votes and force recalculation
"""

__version__ = "0.1.0"
