"""
Motivational content served alongside the planner.
"""
from datetime import date
from typing import Dict, List, Optional

QUOTES: List[Dict[str, str]] = [
    {"text": "The mind is everything. What you think you become.", "author": "Buddha"},
    {"text": "Smile, breathe and go slowly.", "author": "Thich Nhat Hanh"},
    {"text": "Simplicity is the ultimate sophistication.", "author": "Leonardo da Vinci"},
    {"text": "He who has a why to live can bear almost any how.", "author": "Friedrich Nietzsche"},
    {"text": "Do less, be more.", "author": "Unknown"},
]

# Palette offered by the client; stored moods are free text
MOODS: List[Dict[str, str]] = [
    {"label": "Peaceful", "emoji": "🌿"},
    {"label": "Happy", "emoji": "☀️"},
    {"label": "Reflective", "emoji": "🌙"},
    {"label": "Stressed", "emoji": "🌪️"},
    {"label": "Grateful", "emoji": "✨"},
]


def quote_of_the_day(day: Optional[date] = None) -> Dict[str, str]:
    day = day or date.today()
    return QUOTES[day.day % len(QUOTES)]
