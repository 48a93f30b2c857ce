"""Built-in session programs.

The structures mirror the output of :mod:`generate_presets_source` so code
can treat them exactly like programs generated from progression files.
"""

BUILTIN_PROGRAMS = {
    "sleep_cycle_90": {
        "label": "90-Minute Sleep Cycle",
        "description": "One full sleep cycle from wakefulness down to deep sleep and back up into REM.",
        "stages": [
            {"name": "Wind Down (Beta)", "carrier_hz": 60.0, "beat_hz": 14.0, "duration_seconds": 600.0},
            {"name": "Relaxation (Alpha)", "carrier_hz": 110.0, "beat_hz": 10.0, "duration_seconds": 600.0},
            {"name": "Light Sleep (Theta)", "carrier_hz": 110.0, "beat_hz": 6.0, "duration_seconds": 1200.0},
            {"name": "Deep Sleep (Delta)", "carrier_hz": 174.0, "beat_hz": 2.0, "duration_seconds": 2100.0},
            {"name": "REM Cycle", "carrier_hz": 174.0, "beat_hz": 6.0, "duration_seconds": 900.0},
        ],
    },
    "full_night_8h": {
        "label": "8-Hour Full Night Rest",
        "description": "Long induction followed by extended delta rest, regeneration and a dream phase.",
        "stages": [
            {"name": "Induction (Wind Down)", "carrier_hz": 60.0, "beat_hz": 10.0, "duration_seconds": 1800.0},
            {"name": "Deep Rest (Delta)", "carrier_hz": 110.0, "beat_hz": 1.5, "duration_seconds": 10800.0},
            {"name": "Regeneration (Delta/Theta)", "carrier_hz": 174.0, "beat_hz": 3.0, "duration_seconds": 9000.0},
            {"name": "Dream State (REM)", "carrier_hz": 285.0, "beat_hz": 7.0, "duration_seconds": 5400.0},
            {"name": "Gentle Waking (Alpha)", "carrier_hz": 285.0, "beat_hz": 10.0, "duration_seconds": 1800.0},
        ],
    },
    "focus_ramp": {
        "label": "Focus Ramp (Beta to Alpha)",
        "description": "Alert beta work block easing into a calm alpha finish.",
        "stages": [
            {"name": "Engage (Beta)", "carrier_hz": 200.0, "beat_hz": 18.0, "duration_seconds": 1200.0},
            {"name": "Sustain (Low Beta)", "carrier_hz": 200.0, "beat_hz": 14.0, "duration_seconds": 1200.0},
            {"name": "Settle (Alpha)", "carrier_hz": 180.0, "beat_hz": 10.0, "duration_seconds": 600.0},
        ],
    },
    "quick_nap": {
        "label": "Quick Nap",
        "description": "Twenty minutes through alpha and theta without reaching deep sleep.",
        "stages": [
            {"name": "Relax (Alpha)", "carrier_hz": 150.0, "beat_hz": 10.0, "duration_seconds": 300.0},
            {"name": "Drift (Theta)", "carrier_hz": 150.0, "beat_hz": 5.0, "duration_seconds": 900.0},
        ],
    },
}

__all__ = ["BUILTIN_PROGRAMS"]
