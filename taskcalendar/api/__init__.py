"""aiohttp HTTP API for taskcalendar."""
