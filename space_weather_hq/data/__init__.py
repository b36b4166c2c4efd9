"""storage for hourly space weather buckets."""
