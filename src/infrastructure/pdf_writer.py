"""
PDF Writer Module

Generates the monthly shift schedule as a PDF using fpdf2.
One row per day: date, weekday, who is on leave, morning and night crew.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from fpdf import FPDF

from domain.entities import ShiftScheduleDay, NO_LEAVE
from domain.rotation_scheduler import ROLE_DOUBLE, ROLE_MALAM, ROLE_PAGI
from domain.time_arithmetic import MONTH_NAMES
from infrastructure.logger import get_logger

logger = get_logger("PdfWriter")


# ==============================================================================
# Font Configuration
# ==============================================================================
WINDOWS_FONT_PATHS: List[Path] = [
    Path("C:/Windows/Fonts/arial.ttf"),
    Path("C:/Windows/Fonts/segoeui.ttf"),
    Path("C:/Windows/Fonts/tahoma.ttf"),
]

MACOS_FONT_PATHS: List[Path] = [
    Path("/Library/Fonts/Arial Unicode.ttf"),
    Path("/System/Library/Fonts/Supplemental/Arial.ttf"),
]

LINUX_FONT_PATHS: List[Path] = [
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
    Path("/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf"),
]

FALLBACK_FONT = "Helvetica"


def find_unicode_font(custom_font_path: Optional[str] = None) -> Optional[Path]:
    """
    Search for a TTF font with wide glyph coverage.

    Returns None when nothing is found; the caller falls back to Helvetica.
    """
    if custom_font_path:
        custom_path = Path(custom_font_path)
        if custom_path.exists():
            logger.info(f"Memakai font kustom: {custom_path}")
            return custom_path
        else:
            logger.warning(f"Path font kustom tidak ada: {custom_path}")

    for font_path in _get_platform_fonts():
        if font_path.exists():
            logger.debug(f"Font sistem ditemukan: {font_path}")
            return font_path

    return None


def _get_platform_fonts() -> List[Path]:
    """Get the font search list for the current platform."""
    if sys.platform == 'win32':
        return WINDOWS_FONT_PATHS
    elif sys.platform == 'darwin':
        return MACOS_FONT_PATHS
    else:
        return LINUX_FONT_PATHS


def format_filename(pattern: str, year: int, month: int) -> str:
    """Format filename pattern with placeholders; month is 1-12."""
    return pattern.format(
        year=year,
        month=f"{month:02d}"
    )


# ==============================================================================
# SchedulePdf Class (A4 Portrait)
# ==============================================================================
class SchedulePdf(FPDF):
    """FPDF page with title header, page-number footer and font fallback."""

    _font_family: str = FALLBACK_FONT
    _font_loaded: bool = False

    def __init__(self, title: str = "", custom_font_path: Optional[str] = None):
        super().__init__(orientation='P', unit='mm', format='A4')
        self.title_text = title
        self._setup_font(custom_font_path)

    def _setup_font(self, custom_font_path: Optional[str] = None) -> None:
        font_path = find_unicode_font(custom_font_path)

        if font_path:
            try:
                self.add_font("ScheduleFont", "", str(font_path))
                self._font_family = "ScheduleFont"
                self._font_loaded = True
                logger.info(f"Font dimuat: {font_path.name}")
            except Exception as e:
                logger.warning(f"Gagal memuat font {font_path}: {e}")
                self._font_family = FALLBACK_FONT
                self._font_loaded = False
        else:
            logger.debug("Font unicode tidak ditemukan, memakai Helvetica")
            self._font_family = FALLBACK_FONT
            self._font_loaded = False

    @property
    def font_family_name(self) -> str:
        return self._font_family

    def header(self) -> None:
        self.set_font(self._font_family, '', 14)
        self.cell(0, 10, self.title_text, align='C', new_x='LMARGIN', new_y='NEXT')
        self.ln(2)

    def footer(self) -> None:
        self.set_y(-12)
        self.set_font(self._font_family, '', 8)
        self.cell(0, 10, f'Halaman {self.page_no()}/{{nb}}', align='C')


# ==============================================================================
# PdfWriter Class
# ==============================================================================
class PdfWriter:
    """
    Renders a month of ShiftScheduleDay rows plus the weekly role summary.

    Leave days are shaded gray, weekly role rows use the shift colors.
    """

    COLORS: Dict[str, Tuple[int, int, int]] = {
        'pagi': (255, 215, 0),
        'malam': (107, 140, 255),
        'double': (255, 165, 0),
        'gray': (211, 211, 211),
        'header': (68, 114, 196),
        'white': (255, 255, 255),
    }

    ROLE_COLORS = {
        ROLE_PAGI: 'pagi',
        ROLE_MALAM: 'malam',
        ROLE_DOUBLE: 'double',
    }

    COLUMNS: List[Tuple[str, float]] = [
        ("Tanggal", 24),
        ("Hari", 20),
        ("Libur", 26),
        ("Pagi", 42),
        ("Malam", 42),
        ("Keterangan", 36),
    ]

    ROW_HEIGHT = 6.5
    HEADER_HEIGHT = 8
    THIN_LINE = 0.2

    def __init__(self, custom_font_path: Optional[str] = None):
        self._custom_font_path = custom_font_path

    def create_schedule_report(
        self,
        days: List[ShiftScheduleDay],
        year: int,
        month_index: int,
        output_path: Path,
        weekly_roles: Optional[List[Dict[str, str]]] = None
    ) -> Optional[Path]:
        """
        Write the schedule PDF.

        Args:
            days: Schedule rows for the month
            year: Schedule year
            month_index: Month 0-11
            output_path: Target path
            weekly_roles: Optional per-week {name: role} summary

        Returns:
            The written path, or None when there is nothing to draw
        """
        if not days:
            return None

        title = f"Jadwal Shift {MONTH_NAMES[month_index]} {year}"
        pdf = SchedulePdf(title=title, custom_font_path=self._custom_font_path)
        pdf.alias_nb_pages()
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.add_page()

        self._draw_header_row(pdf)
        for day in days:
            if pdf.will_page_break(self.ROW_HEIGHT):
                pdf.add_page()
                self._draw_header_row(pdf)
            self._draw_day_row(pdf, day)

        if weekly_roles:
            pdf.ln(6)
            self._draw_weekly_roles(pdf, weekly_roles)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        pdf.output(str(output_path))
        logger.info(f"PDF jadwal disimpan: {output_path}")
        return output_path

    def _draw_header_row(self, pdf: SchedulePdf) -> None:
        pdf.set_font(pdf.font_family_name, '', 10)
        pdf.set_fill_color(*self.COLORS['header'])
        pdf.set_text_color(255, 255, 255)
        pdf.set_line_width(self.THIN_LINE)
        for label, width in self.COLUMNS:
            pdf.cell(width, self.HEADER_HEIGHT, label, border=1, align='C', fill=True)
        pdf.ln(self.HEADER_HEIGHT)
        pdf.set_text_color(0, 0, 0)

    def _draw_day_row(self, pdf: SchedulePdf, day: ShiftScheduleDay) -> None:
        pdf.set_font(pdf.font_family_name, '', 8)
        on_leave = day.libur != NO_LEAVE
        pdf.set_fill_color(*self.COLORS['gray' if on_leave else 'white'])
        values = [
            day.date,
            day.day_name,
            day.libur if on_leave else "-",
            ", ".join(day.pagi),
            ", ".join(day.malam),
            day.keterangan,
        ]
        for (_, width), value in zip(self.COLUMNS, values):
            pdf.cell(width, self.ROW_HEIGHT, self._fit(pdf, value, width), border=1, fill=True)
        pdf.ln(self.ROW_HEIGHT)

    def _draw_weekly_roles(self, pdf: SchedulePdf, weekly_roles: List[Dict[str, str]]) -> None:
        pdf.set_font(pdf.font_family_name, '', 10)
        pdf.cell(0, 8, "Peran Mingguan", new_x='LMARGIN', new_y='NEXT')
        pdf.set_font(pdf.font_family_name, '', 8)
        for week_idx, roles in enumerate(weekly_roles):
            pdf.cell(24, self.ROW_HEIGHT, f"Minggu {week_idx + 1}", border=1)
            for name, role in roles.items():
                color = self.ROLE_COLORS.get(role, 'white')
                pdf.set_fill_color(*self.COLORS[color])
                pdf.cell(40, self.ROW_HEIGHT, f"{name}: {role}", border=1, fill=True)
            pdf.ln(self.ROW_HEIGHT)

    def _fit(self, pdf: SchedulePdf, text: str, width: float) -> str:
        """Truncate text with '..' so it fits the cell width."""
        text = str(text or "")
        limit = width - 2
        if pdf.get_string_width(text) <= limit:
            return text
        while text and pdf.get_string_width(text + "..") > limit:
            text = text[:-1]
        return text + ".."
