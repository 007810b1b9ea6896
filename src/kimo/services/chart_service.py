"""Chart images via QuickChart.

QuickChart renders a Chart.js config passed in the query string, so a
chart is just a URL; nothing is fetched here. The gateway downloads the
image when it is sent with ``send_image``.
"""

import json
import logging
from urllib.parse import quote

from kimo.app.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 500

PIE_COLORS = [
    "rgba(255, 99, 132, 0.8)",
    "rgba(54, 162, 235, 0.8)",
    "rgba(255, 206, 86, 0.8)",
    "rgba(75, 192, 192, 0.8)",
    "rgba(153, 102, 255, 0.8)",
    "rgba(255, 159, 64, 0.8)",
]


def _title(text: str, size: int = 18) -> dict:
    return {"display": True, "text": text, "fontSize": size}


def _money_axis() -> dict:
    return {"yAxes": [{"ticks": {"beginAtZero": True}}]}


def color_for_percentage(percentage: float) -> str:
    if percentage >= 100:
        return "rgba(75, 192, 192, 0.8)"  # green
    if percentage >= 70:
        return "rgba(255, 206, 86, 0.8)"  # yellow
    if percentage >= 40:
        return "rgba(255, 159, 64, 0.8)"  # orange
    return "rgba(255, 99, 132, 0.8)"  # red


class ChartService:
    """Build QuickChart image URLs for the driver's reports."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.quickchart_base_url

    def weekly_progress(
        self,
        labels: list[str],
        earnings: list[float],
        expenses: list[float],
        profit: list[float],
    ) -> str:
        """Grouped bars of earnings, expenses and profit per day."""
        config = {
            "type": "bar",
            "data": {
                "labels": labels,
                "datasets": [
                    {"label": "Ganhos", "data": earnings, "backgroundColor": "rgba(75, 192, 192, 0.6)"},
                    {"label": "Despesas", "data": expenses, "backgroundColor": "rgba(255, 99, 132, 0.6)"},
                    {"label": "Lucro", "data": profit, "backgroundColor": "rgba(54, 162, 235, 0.6)"},
                ],
            },
            "options": {
                "title": _title("Progresso Semanal"),
                "scales": _money_axis(),
                "legend": {"display": True, "position": "bottom"},
            },
        }
        return self._build_url(config)

    def profit_trend(self, labels: list[str], profit: list[float], weekly_goal: float | None = None) -> str:
        """Daily profit line, with the daily share of the weekly goal as a dashed line."""
        datasets = [
            {
                "label": "Lucro Diário",
                "data": profit,
                "borderColor": "rgba(75, 192, 192, 1)",
                "backgroundColor": "rgba(75, 192, 192, 0.2)",
                "fill": True,
                "lineTension": 0.4,
            }
        ]
        if weekly_goal:
            datasets.append(
                {
                    "label": "Meta",
                    "data": [round(weekly_goal / 7, 2)] * len(labels),
                    "borderColor": "rgba(255, 206, 86, 1)",
                    "borderDash": [5, 5],
                    "fill": False,
                    "pointRadius": 0,
                }
            )
        config = {
            "type": "line",
            "data": {"labels": labels, "datasets": datasets},
            "options": {
                "title": _title("Evolução do Lucro"),
                "scales": _money_axis(),
                "legend": {"display": True, "position": "bottom"},
            },
        }
        return self._build_url(config)

    def expenses_pie(self, labels: list[str], values: list[float]) -> str:
        config = {
            "type": "pie",
            "data": {
                "labels": labels,
                "datasets": [{"data": values, "backgroundColor": PIE_COLORS[: max(len(values), 1)]}],
            },
            "options": {
                "title": _title("Despesas por Tipo"),
                "legend": {"display": True, "position": "right"},
            },
        }
        return self._build_url(config)

    def goal_progress(self, current: float, goal: float, percentage: float) -> str:
        config = {
            "type": "radialGauge",
            "data": {
                "datasets": [
                    {
                        "data": [round(min(percentage, 100), 1)],
                        "backgroundColor": color_for_percentage(percentage),
                    }
                ]
            },
            "options": {
                "title": _title(f"Meta Semanal: {percentage:.0f}%", size=20),
                "centerPercentage": 80,
                "centerArea": {"text": f"R$ {current:.0f} de R$ {goal:.0f}", "fontSize": 24},
            },
        }
        return self._build_url(config, width=600, height=400)

    def _build_url(self, config: dict, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT) -> str:
        encoded = quote(json.dumps(config, ensure_ascii=False, separators=(",", ":")), safe="")
        url = f"{self.base_url}?width={width}&height={height}&chart={encoded}"
        logger.info("Built %s chart (%d chars)", config["type"], len(url))
        return url
