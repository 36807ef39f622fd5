"""tasknudge - task reminders that survive a closed page."""
