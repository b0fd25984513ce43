"""FinTrack voice assistant core.

Turns spoken Portuguese commands into navigation, drafts and spoken answers
for the FinTrack personal-finance app.
"""

__version__ = "0.3.0"
