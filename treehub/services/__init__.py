from treehub.services.scoring import calculate_job_match_score, score_contractor
from treehub.services.storm import generate_storm_leads
from treehub.services.weather import run_weather_sweep
from treehub.services.orchestrator import scheduled_tier_review_job, scheduled_weather_job, sweep_and_respond
