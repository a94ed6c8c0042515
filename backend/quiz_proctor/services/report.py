"""
Report card built from the backend's /getreport payload
"""
import base64
import io
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import matplotlib
matplotlib.use('Agg')  # Use non-GUI backend
import matplotlib.pyplot as plt

from ..models.data_models import AttemptStatus

logger = logging.getLogger(__name__)


PASS_COLOR = "#4caf50"
FAIL_COLOR = "#f44336"
NEUTRAL_COLOR = "#9e9e9e"

PIE_LABELS = [
    (AttemptStatus.PASS, "Pass"),
    (AttemptStatus.FAIL, "Fail"),
    (AttemptStatus.NOT_ATTEMPTED, "Face not detected"),
]

NO_REPORT_MESSAGE = "No report data available."


def format_percentage(score: Optional[float]) -> str:
    if not score:
        return "N/A"
    return f"{score * 100:.2f}%"


def display_status(status: str) -> str:
    if status == AttemptStatus.NOT_ATTEMPTED.value:
        return "Face detection failed"
    return status


def _format_timestamp(value: Any) -> str:
    if isinstance(value, (int, float)):
        # epoch milliseconds, as produced by browser clients
        return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return str(value)


def build_report_card(report: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Summarise a face authentication report.

    Returns a dict with the header fields, status counts, pie data, score
    trend, formatted summary and one row per attempt. A missing report gives
    {"available": False, "message": ...}.
    """
    if not report:
        return {"available": False, "message": NO_REPORT_MESSAGE}

    details = report.get("details") or []
    summary = report.get("summary") or {}

    status_count = {status.value: 0 for status in AttemptStatus}
    score_trend = []
    attempts = []

    for index, attempt in enumerate(details):
        status = attempt.get("status")
        status_count[status] = status_count.get(status, 0) + 1
        score = attempt.get("score")

        if score is not None:
            score_trend.append({
                "name": f"#{index + 1}",
                "score": round(score * 100, 2)
            })

        attempts.append({
            "attempt": index + 1,
            "timestamp": _format_timestamp(attempt.get("timestamp")),
            "score": format_percentage(score),
            "status": display_status(status),
            "raw_status": status,
        })

    pie_data = [
        {"name": label, "value": status_count[status.value]}
        for status, label in PIE_LABELS
    ]

    return {
        "available": True,
        "title": "Face Authentication Report",
        "username": report.get("username"),
        "test_id": report.get("test_id"),
        "test_name": report.get("test_name"),
        "status_count": status_count,
        "pie_data": pie_data,
        "score_trend": score_trend,
        "summary": {
            "average_score": f"{(summary.get('average_score') or 0) * 100:.2f}%",
            "median_score": f"{(summary.get('median_score') or 0) * 100:.2f}%",
            "total_attempts": summary.get("total_attempts", len(details)),
        },
        "attempts": attempts,
    }


def make_plot_base64(fig) -> str:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", bbox_inches='tight')
    plt.close(fig)
    buf.seek(0)
    return base64.b64encode(buf.getvalue()).decode('ascii')


def render_charts(card: Dict[str, Any]) -> Dict[str, str]:
    """
    Pie chart of attempt outcomes and line chart of the score trend, as
    base64 PNGs.
    """
    if not card.get("available"):
        return {}

    charts = {}

    pie_data = [entry for entry in card["pie_data"] if entry["value"] > 0]
    fig, ax = plt.subplots(figsize=(4, 3))
    if pie_data:
        colors = {"Pass": PASS_COLOR, "Fail": FAIL_COLOR}
        ax.pie(
            [entry["value"] for entry in pie_data],
            labels=[entry["name"] for entry in pie_data],
            colors=[colors.get(entry["name"], NEUTRAL_COLOR) for entry in pie_data],
            autopct="%1.0f%%"
        )
    else:
        ax.text(0.5, 0.5, "No attempts", ha="center", va="center")
        ax.axis("off")
    ax.set_title("Attempt outcomes")
    charts["status_pie"] = make_plot_base64(fig)

    trend = card["score_trend"]
    fig, ax = plt.subplots(figsize=(6, 3))
    ax.plot(
        [point["name"] for point in trend],
        [point["score"] for point in trend],
        color=PASS_COLOR, marker="o"
    )
    ax.set_ylim(90, 100)
    ax.set_ylabel("%")
    ax.grid(True, linestyle="--", alpha=0.5)
    ax.set_title("Score Trend Over Attempts")
    charts["score_trend"] = make_plot_base64(fig)

    logger.debug(f"Rendered report charts for {card.get('username')}")
    return charts
