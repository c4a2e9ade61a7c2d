"""Daily bar panel ingestion and composite scoreboard."""
