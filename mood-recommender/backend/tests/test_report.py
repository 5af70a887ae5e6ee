from helpers import SAMPLE
from models import RecommendationSet
from services.report import build_report


def test_build_report_basic():
    md = build_report(RecommendationSet.from_dict(SAMPLE), feeling="overwhelmed and tired")
    assert "MoodMatch Recommendations" in md
    assert "Feeling: overwhelmed and tired" in md
    assert "Books to Read" in md
    assert "1. **The Comfort Book**: Short, gentle reflections for a tired mind." in md
    assert md.index("Meals to Enjoy") < md.index("Things to Do")


def test_build_report_marks_missing_sections():
    md = build_report(RecommendationSet.from_dict({"books": SAMPLE["books"]}))
    assert "Feeling:" not in md
    assert md.count("- Not available") == 2
