from __future__ import annotations

import logging
import sys
from pathlib import Path

from PySide6.QtGui import QColor, QPalette
from PySide6.QtWidgets import QApplication

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
    from batisync.settings import APP_NAME, AppSettings
    from batisync.ui.main_window import MainWindow
else:
    from .settings import APP_NAME, AppSettings
    from .ui.main_window import MainWindow

PALETTES: dict[str, dict[QPalette.ColorRole, str]] = {
    "light": {
        QPalette.ColorRole.Window: "#f4f6f9",
        QPalette.ColorRole.WindowText: "#1d2530",
        QPalette.ColorRole.Base: "#ffffff",
        QPalette.ColorRole.AlternateBase: "#eef2f7",
        QPalette.ColorRole.Text: "#1d2530",
        QPalette.ColorRole.Button: "#ffffff",
        QPalette.ColorRole.ButtonText: "#1d2530",
        QPalette.ColorRole.Highlight: "#1f6fb2",
        QPalette.ColorRole.HighlightedText: "#ffffff",
    },
    "dark": {
        QPalette.ColorRole.Window: "#1f2227",
        QPalette.ColorRole.WindowText: "#d7dbe0",
        QPalette.ColorRole.Base: "#272b31",
        QPalette.ColorRole.AlternateBase: "#2f343b",
        QPalette.ColorRole.Text: "#d7dbe0",
        QPalette.ColorRole.Button: "#2f343b",
        QPalette.ColorRole.ButtonText: "#d7dbe0",
        QPalette.ColorRole.Highlight: "#2d7dd2",
        QPalette.ColorRole.HighlightedText: "#ffffff",
    },
}


def apply_theme(app: QApplication, theme: str) -> None:
    app.setStyle("Fusion")

    palette = QPalette()
    for role, color in PALETTES.get(theme, PALETTES["light"]).items():
        palette.setColor(role, QColor(color))
    app.setPalette(palette)

    app.setStyleSheet(
        """
        QWidget {
            font-family: "Segoe UI Variable", "Segoe UI", "Noto Sans", sans-serif;
            font-size: 13px;
        }
        QToolBar {
            border: 1px solid palette(mid);
            border-radius: 8px;
            padding: 6px;
            spacing: 6px;
        }
        QGroupBox {
            border: 1px solid palette(mid);
            border-radius: 8px;
            margin-top: 14px;
            padding: 10px;
        }
        QGroupBox::title {
            subcontrol-origin: margin;
            left: 10px;
            padding: 0 4px;
        }
        QLineEdit, QPlainTextEdit, QComboBox, QDateEdit, QDoubleSpinBox, QTableWidget {
            border: 1px solid palette(mid);
            border-radius: 6px;
            padding: 4px;
        }
        """
    )


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> int:
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_NAME)

    settings = AppSettings.load()
    apply_theme(app, settings.ui_theme)
    window = MainWindow(settings=settings)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
