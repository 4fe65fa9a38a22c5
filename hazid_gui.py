#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
HAZID workshop table (PyQt5)
- One table row per hazard, causes and consequences stacked inside it
- Segment heights aligned across columns after every relayout
- Risk matrix tab with editable severity descriptions
- Excel export with merged cells and risk colours
"""

import os
import sys
from typing import Callable, Dict, List, Optional

from PyQt5 import QtCore
from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QTableWidget, QTableWidgetItem, QLabel, QLineEdit, QPlainTextEdit,
    QPushButton, QComboBox, QFileDialog, QMessageBox, QHBoxLayout, QVBoxLayout, QFrame, QTabWidget,
    QHeaderView, QAbstractItemView, QAction, QMenu, QSizePolicy
)
from PyQt5.QtGui import QColor

from hazid_core import (
    AppConfig,
    ExportReport,
    Hazard,
    HazardStore,
    ItemRef,
    RelayoutCoalescer,
    RiskMatrix,
    SEVERITY_CATEGORIES,
    SegmentKey,
    allocate_block,
    block_row_count,
    export_xlsx,
    load_config,
    sync_segment_heights,
)
from hazid_core.documents import read_document_data, read_risk_config, write_document, write_risk_config
from hazid_core.height_sync import segment_keys
from hazid_core.layout import BlockAllocation, ItemSpan
from hazid_core.models import Cause, Consequence, Measure, MeasureOwner, Recommendation

COLUMNS = (
    "Hazard",
    "Causes",
    "Prevention measures",
    "Consequences",
    "Mitigation measures",
    "Severity category",
    "Severity level",
    "Likelihood level",
    "Risk",
    "Recommendations",
    "Actions",
)
COL_HAZARD, COL_RECOMMENDATIONS, COL_ACTIONS = 0, 9, 10
SIDE_COLUMNS = {
    "cause": 1,
    "cause-measures": 2,
    "consequence": 3,
    "consequence-measures": 4,
    "risk-sev-cat": 5,
    "risk-sev": 6,
    "risk-like": 7,
    "risk-score": 8,
}
DEFAULT_COLUMN_WIDTHS = (220, 200, 230, 200, 230, 130, 150, 150, 90, 260, 110)
DOCUMENT_FILTER = "HAZID files (*.json *.yaml *.yml)"


def post_next_tick(fn: Callable[[], None]) -> None:
    QtCore.QTimer.singleShot(0, fn)


# ==========================
# persistence + surface adapters
# ==========================

class SettingsKeyValueStore:
    """QSettings backed key-value store used for autosave."""

    def __init__(self, settings: QtCore.QSettings):
        self.settings = settings

    def get(self, key: str):
        value = self.settings.value(key, None)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.settings.setValue(key, value)
        self.settings.sync()


class QtSegmentSurface:
    """Maps segment keys to the frames rendered in the hazard table."""

    def __init__(self):
        self.segments: Dict[SegmentKey, QWidget] = {}

    def register(self, key: SegmentKey, widget: QWidget) -> None:
        self.segments[key] = widget

    def clear(self) -> None:
        self.segments = {}

    def has_segment(self, key: SegmentKey) -> bool:
        return key in self.segments

    def clear_forced_height(self, key: SegmentKey) -> None:
        self.segments[key].setMinimumHeight(0)

    def natural_height(self, key: SegmentKey) -> int:
        widget = self.segments[key]
        lay = widget.layout()
        if lay is not None:
            lay.activate()
        return widget.sizeHint().height()

    def force_height(self, key: SegmentKey, height: int) -> None:
        self.segments[key].setMinimumHeight(height)


# ==========================
# widgets
# ==========================

class SegmentStack(QWidget):
    """Vertical stack of segments; stretch factors follow the allocated row spans."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("SegmentStack")
        lay = QVBoxLayout(self)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.setSpacing(0)

    def add_segment(self, content: QWidget, row_span: int = 1, kind: str = "") -> QFrame:
        seg = QFrame(self)
        seg.setObjectName("Segment")
        seg.setProperty("kind", kind)
        seg.setSizePolicy(QSizePolicy.Preferred, QSizePolicy.Expanding)
        lay = QVBoxLayout(seg)
        lay.setContentsMargins(4, 3, 4, 3)
        lay.setSpacing(2)
        lay.addWidget(content)
        lay.addStretch(1)
        self.layout().addWidget(seg, max(1, row_span))
        return seg


def _button(text: str, slot: Callable[[], None], role: str = "", tooltip: str = "") -> QPushButton:
    btn = QPushButton(text)
    btn.setCursor(Qt.PointingHandCursor)
    if role:
        btn.setProperty("role", role)
    if tooltip:
        btn.setToolTip(tooltip)
    btn.clicked.connect(lambda _=False: slot())
    return btn


def _button_row(*buttons: QPushButton) -> QWidget:
    w = QWidget()
    lay = QHBoxLayout(w)
    lay.setContentsMargins(0, 0, 0, 0)
    lay.setSpacing(2)
    for b in buttons:
        lay.addWidget(b)
    lay.addStretch(1)
    return w


def _line_edit(text: str, placeholder: str, on_edit: Callable[[str], None]) -> QLineEdit:
    edit = QLineEdit(text)
    edit.setPlaceholderText(placeholder)
    edit.textEdited.connect(on_edit)
    return edit


# ==========================
# main window
# ==========================

class MainWindow(QMainWindow):
    def __init__(self, store: HazardStore, config: AppConfig, settings: QtCore.QSettings):
        super().__init__()
        self.setWindowTitle("HAZID Workshop")
        self.resize(1500, 860)
        self.store = store
        self.config = config
        self.settings = settings

        self.surface = QtSegmentSurface()
        self._allocations: Dict[int, BlockAllocation] = {}
        self._rebuild = RelayoutCoalescer(self._rebuild_table, post_next_tick)
        self._sync = RelayoutCoalescer(self._sync_heights, post_next_tick)
        self.store.listeners.append(self._rebuild.request)

        self.tabs = QTabWidget(self)
        self.setCentralWidget(self.tabs)

        self.table = QTableWidget(0, len(COLUMNS), self)
        self.table.setHorizontalHeaderLabels(list(COLUMNS))
        self.table.setSelectionMode(QAbstractItemView.NoSelection)
        self.table.setVerticalScrollMode(QAbstractItemView.ScrollPerPixel)
        self.table.setHorizontalScrollMode(QAbstractItemView.ScrollPerPixel)
        self.table.verticalHeader().setSectionResizeMode(QHeaderView.Fixed)
        self.table.horizontalHeader().setStretchLastSection(False)
        self.table.horizontalHeader().sectionResized.connect(lambda *_: self._sync.request())
        self.table.setContextMenuPolicy(Qt.CustomContextMenu)
        self.table.customContextMenuRequested.connect(self._open_table_ctx_menu)
        for i, w in enumerate(DEFAULT_COLUMN_WIDTHS):
            self.table.setColumnWidth(i, w)
        self.tabs.addTab(self.table, "Hazards")
        self.tabs.addTab(self._build_risk_matrix_page(), "Risk matrix")

        self._apply_qss_theme()
        self._restore_settings()
        self._rebuild_table()
        self.statusBar().showMessage("Ready", 3000)

    # ----- settings -----
    def _restore_settings(self):
        geo = self.settings.value("win/geo", type=QtCore.QByteArray)
        if geo:
            self.restoreGeometry(geo)
        widths = self.settings.value("table/col_widths", [])
        if isinstance(widths, list) and len(widths) == self.table.columnCount():
            for i, w in enumerate(widths):
                try:
                    self.table.setColumnWidth(i, int(w))
                except (TypeError, ValueError):
                    pass

    def closeEvent(self, e):
        self.settings.setValue("win/geo", self.saveGeometry())
        widths = [self.table.columnWidth(i) for i in range(self.table.columnCount())]
        self.settings.setValue("table/col_widths", widths)
        self.store.autosave_now()
        super().closeEvent(e)

    # ----- relayout triggers -----
    def resizeEvent(self, e):
        super().resizeEvent(e)
        self._sync.request()

    def changeEvent(self, e):
        super().changeEvent(e)
        if e.type() in (QtCore.QEvent.FontChange, QtCore.QEvent.ApplicationFontChange):
            self._sync.request()

    # ----- QSS theme (Light) -----
    def _apply_qss_theme(self):
        primary = "#024F75"; danger = "#B42318"
        bg0 = "#FFFFFF"; bg1 = "#F7F8FA"; border = "#DADCE0"
        self.setStyleSheet(f"""
        * {{ font-size: 11px; }}
        QTableWidget {{ background: {bg0}; gridline-color: {border}; }}
        QHeaderView::section {{
            background: {primary}; color: white; padding: 4px 6px;
            border: none; border-right: 1px solid white; font-weight: 600;
        }}
        QFrame#Segment {{ border-bottom: 1px solid {border}; background: {bg0}; }}
        QFrame#Segment[kind="placeholder"] {{ background: {bg1}; }}
        QLabel#RiskBadge {{ border-radius: 4px; padding: 3px 6px; font-weight: 600; }}
        QPushButton {{
            padding: 2px 6px; border: 1px solid {border}; border-radius: 4px; background: {bg1};
        }}
        QPushButton:hover {{ background: #EEF5FF; }}
        QPushButton[role="primary"] {{ color: {primary}; border-color: {primary}; }}
        QPushButton[role="danger"] {{ color: {danger}; }}
        QLineEdit, QPlainTextEdit, QComboBox {{
            border: 1px solid {border}; border-radius: 4px; padding: 2px 4px; background: {bg0};
        }}
        """)

    # ==========================
    # hazard table
    # ==========================
    def _rebuild_table(self):
        """Render every hazard from the store, then schedule the height sync."""
        self._rebuild.cancel()
        self.surface.clear()
        self._allocations = {}
        self.store.risk_matrix.refresh_risk_scores(self.store.hazards)
        self.table.setRowCount(0)
        self.table.setRowCount(len(self.store.hazards))
        for row, hazard in enumerate(self.store.hazards):
            self._render_hazard_row(row, hazard)
        self._render_risk_matrix_view()
        self._sync.request()

    def _sync_heights(self):
        sync_segment_heights(self.surface, self._allocations)
        for row in range(self.table.rowCount()):
            self._update_row_height(row)

    def _update_row_height(self, row: int):
        heights = [0]
        for col in range(self.table.columnCount()):
            w = self.table.cellWidget(row, col)
            if w is not None:
                lay = w.layout()
                if lay is not None:
                    lay.activate()
                heights.append(w.sizeHint().height())
        self.table.setRowHeight(row, max(heights) + 2)

    def _render_hazard_row(self, row: int, hazard: Hazard):
        allocation = allocate_block(hazard)
        self._allocations[row] = allocation
        self.table.setCellWidget(row, COL_HAZARD, self._hazard_cell(row, hazard))

        stacks = {kind: SegmentStack() for kind in SIDE_COLUMNS}
        if hazard.causes:
            for span in allocation.causes:
                self._render_cause(row, span, hazard.causes[span.index], stacks)
        else:
            stacks["cause"].add_segment(
                _button("+ Add cause", lambda: self.store.add_cause(row), "primary"),
                allocation.block_rows, "placeholder")
            stacks["cause-measures"].add_segment(QWidget(), allocation.block_rows, "placeholder")

        if hazard.consequences:
            for span in allocation.consequences:
                self._render_consequence(row, span, hazard.consequences[span.index], stacks)
        else:
            stacks["consequence"].add_segment(
                _button("+ Add consequence", lambda: self.store.add_consequence(row), "primary"),
                allocation.block_rows, "placeholder")
            for kind in ("consequence-measures", "risk-sev-cat", "risk-sev", "risk-like", "risk-score"):
                stacks[kind].add_segment(QWidget(), allocation.block_rows, "placeholder")

        for kind, stack in stacks.items():
            self.table.setCellWidget(row, SIDE_COLUMNS[kind], stack)
        self.table.setCellWidget(row, COL_RECOMMENDATIONS, self._recommendations_cell(row, hazard))
        self.table.setCellWidget(row, COL_ACTIONS, self._actions_cell(row))

    def _register(self, key: SegmentKey, segment: QFrame) -> None:
        self.surface.register(key, segment)

    # ----- hazard column -----
    def _hazard_cell(self, row: int, hazard: Hazard) -> QWidget:
        w = QWidget()
        lay = QVBoxLayout(w)
        lay.setContentsMargins(4, 3, 4, 3)
        lay.setSpacing(3)

        title = _line_edit(hazard.title, "Hazard title", lambda t, h=hazard: self._edit_field(h, "title", t))
        title.setStyleSheet("font-weight: 600;")
        desc = QPlainTextEdit(hazard.description)
        desc.setPlaceholderText("Description")
        desc.setFixedHeight(54)
        desc.textChanged.connect(lambda d=desc, h=hazard: self._edit_field(h, "description", d.toPlainText()))
        lay.addWidget(title)
        lay.addWidget(desc)
        lay.addWidget(_button_row(
            _button("+ Cause", lambda: self.store.add_cause(row), "primary"),
            _button("+ Consequence", lambda: self.store.add_consequence(row), "primary"),
        ))
        lay.addStretch(1)
        w.setToolTip(f"{block_row_count(hazard)} export row(s)")
        return w

    # ----- cause side -----
    def _render_cause(self, row: int, span: ItemSpan, cause: Cause, stacks: Dict[str, SegmentStack]):
        i = span.index
        editor = QWidget()
        v = QVBoxLayout(editor)
        v.setContentsMargins(0, 0, 0, 0)
        v.setSpacing(2)
        v.addWidget(_line_edit(cause.text, "Cause", lambda t, c=cause: self._edit_field(c, "text", t)))
        ref = ItemRef("cause", row, i)
        v.addWidget(_button_row(
            _button("Copy", lambda: self._copy_item(ref)),
            _button("Paste", lambda: self._paste_item(ref)),
            _button("Remove", lambda: self.store.remove_cause(row, i), "danger"),
        ))
        self._register(SegmentKey(row, "cause", i), stacks["cause"].add_segment(editor, span.row_span, "cause"))
        self._register(
            SegmentKey(row, "cause-measures", i),
            stacks["cause-measures"].add_segment(self._measure_stack(row, "cause", span, cause.measures), span.row_span),
        )

    # ----- consequence side -----
    def _render_consequence(self, row: int, span: ItemSpan, consequence: Consequence, stacks: Dict[str, SegmentStack]):
        i = span.index
        risk = consequence.risk
        matrix = self.store.risk_matrix

        editor = QWidget()
        v = QVBoxLayout(editor)
        v.setContentsMargins(0, 0, 0, 0)
        v.setSpacing(2)
        v.addWidget(_line_edit(consequence.text, "Consequence", lambda t, c=consequence: self._edit_field(c, "text", t)))
        ref = ItemRef("consequence", row, i)
        v.addWidget(_button_row(
            _button("Copy", lambda: self._copy_item(ref)),
            _button("Paste", lambda: self._paste_item(ref)),
            _button("Remove", lambda: self.store.remove_consequence(row, i), "danger"),
        ))
        cells = {
            "consequence": editor,
            "consequence-measures": self._measure_stack(row, "consequence", span, consequence.measures),
        }

        cat = QComboBox()
        cat.addItem("Select category", "")
        for c in SEVERITY_CATEGORIES:
            cat.addItem(c.capitalize(), c)
        cells["risk-sev-cat"] = cat

        sev = QComboBox()
        sev.addItem("Select severity", "")
        for level in matrix.severity:
            sev.addItem(level.label, level.id)
        cells["risk-sev"] = sev

        lik = QComboBox()
        lik.addItem("Select likelihood", "")
        for level in matrix.likelihood:
            text = f"{level.label} - {level.description}" if level.description else level.label
            lik.addItem(text, level.id)
        cells["risk-like"] = lik

        for combo, value in ((cat, risk.severity_category), (sev, risk.severity_level), (lik, risk.likelihood_level)):
            idx = combo.findData(value)
            combo.setCurrentIndex(idx if idx >= 0 else 0)
        self._refresh_severity_tooltips(sev, risk.severity_category)

        cat.currentIndexChanged.connect(
            lambda _, c=cat, s=sev, r=risk: self._on_category_changed(r, c.currentData() or "", s))
        sev.currentIndexChanged.connect(
            lambda _, c=sev, r=risk: self._on_risk_changed(r, "severity_level", c.currentData() or ""))
        lik.currentIndexChanged.connect(
            lambda _, c=lik, r=risk: self._on_risk_changed(r, "likelihood_level", c.currentData() or ""))

        badge = QLabel(risk.risk_score or "-")
        badge.setObjectName("RiskBadge")
        badge.setAlignment(Qt.AlignCenter)
        color = matrix.color_for(risk.severity_level, risk.likelihood_level)
        if color:
            badge.setStyleSheet(f"background: {color}; color: white;")
        cells["risk-score"] = badge

        for kind, content in cells.items():
            seg = stacks[kind].add_segment(content, span.row_span, kind)
            self._register(SegmentKey(row, kind, i), seg)

    def _refresh_severity_tooltips(self, combo: QComboBox, category: str):
        matrix = self.store.risk_matrix
        for idx in range(1, combo.count()):
            sev_id = combo.itemData(idx)
            text = matrix.severity_description(sev_id, category) if category else ""
            combo.setItemData(idx, text or "Select a severity category first", Qt.ToolTipRole)

    def _on_category_changed(self, risk, category: str, severity_combo: QComboBox):
        risk.severity_category = category
        self._refresh_severity_tooltips(severity_combo, category)
        self.store.autosave_now()

    def _on_risk_changed(self, risk, attr: str, value: str):
        setattr(risk, attr, value)
        self.store.notify_changed()

    # ----- measures -----
    def _measure_stack(self, row: int, owner: MeasureOwner, span: ItemSpan, measures: List[Measure]) -> QWidget:
        stack = SegmentStack()
        label = "+ Prevention measure" if owner == "cause" else "+ Mitigation measure"
        if span.placeholder:
            stack.add_segment(
                _button(label, lambda: self.store.add_measure(row, owner, span.index), "primary"),
                span.row_span, "placeholder")
            return stack
        for m in span.measures:
            measure = measures[m.index]
            ref = ItemRef("measure", row, span.index, owner, m.index)
            w = QWidget()
            v = QVBoxLayout(w)
            v.setContentsMargins(0, 0, 0, 0)
            v.setSpacing(2)
            v.addWidget(_line_edit(measure.text, "Measure", lambda t, x=measure: self._edit_field(x, "text", t)))
            v.addWidget(_button_row(
                _button("+", lambda mi=m.index: self.store.add_measure(row, owner, span.index, after=mi),
                        tooltip="Insert measure below"),
                _button("Copy", lambda r=ref: self._copy_item(r)),
                _button("Paste", lambda r=ref: self._paste_item(r)),
                _button("Remove", lambda mi=m.index: self.store.remove_measure(row, owner, span.index, mi), "danger"),
            ))
            stack.add_segment(w, m.row_span, "measure")
        return stack

    # ----- recommendations -----
    def _recommendations_cell(self, row: int, hazard: Hazard) -> QWidget:
        w = QWidget()
        lay = QVBoxLayout(w)
        lay.setContentsMargins(4, 3, 4, 3)
        lay.setSpacing(3)
        for i, reco in enumerate(hazard.recommendations):
            lay.addWidget(self._recommendation_editor(row, i, reco))
        lay.addWidget(_button("+ Recommendation", lambda: self.store.add_recommendation(row), "primary"))
        lay.addStretch(1)
        return w

    def _recommendation_editor(self, row: int, i: int, reco: Recommendation) -> QWidget:
        w = QWidget()
        v = QVBoxLayout(w)
        v.setContentsMargins(0, 0, 0, 0)
        v.setSpacing(2)
        v.addWidget(_line_edit(reco.action, "Action", lambda t, r=reco: self._edit_field(r, "action", t)))
        v.addWidget(_line_edit(reco.responsible, "Responsible", lambda t, r=reco: self._edit_field(r, "responsible", t)))
        ref = ItemRef("recommendation", row, i)
        v.addWidget(_button_row(
            _button("Copy", lambda: self._copy_item(ref)),
            _button("Paste", lambda: self._paste_item(ref)),
            _button("Remove", lambda: self.store.remove_recommendation(row, i), "danger"),
        ))
        return w

    # ----- row actions -----
    def _actions_cell(self, row: int) -> QWidget:
        w = QWidget()
        lay = QVBoxLayout(w)
        lay.setContentsMargins(4, 3, 4, 3)
        lay.setSpacing(2)
        lay.addWidget(_button("Add above", lambda: self.store.insert_hazard(row)))
        lay.addWidget(_button("Add below", lambda: self.store.insert_hazard(row + 1)))
        lay.addWidget(_button("Duplicate", lambda: self.store.duplicate_hazard(row)))
        lay.addWidget(_button("Copy", lambda: self._copy_hazard(row)))
        lay.addWidget(_button("Paste", lambda: self._paste_hazard(row)))
        lay.addWidget(_button("Remove", lambda: self._remove_hazard(row), "danger"))
        lay.addStretch(1)
        return w

    def _open_table_ctx_menu(self, pos: QtCore.QPoint):
        idx = self.table.indexAt(pos)
        if not idx.isValid():
            return
        row = idx.row()
        m = QMenu(self)
        act_above = m.addAction("Add hazard above")
        act_below = m.addAction("Add hazard below")
        act_dup = m.addAction("Duplicate hazard")
        m.addSeparator()
        act_del = m.addAction("Remove hazard")
        action = m.exec_(self.table.viewport().mapToGlobal(pos))
        if action == act_above:
            self.store.insert_hazard(row)
        elif action == act_below:
            self.store.insert_hazard(row + 1)
        elif action == act_dup:
            self.store.duplicate_hazard(row)
        elif action == act_del:
            self._remove_hazard(row)

    def _remove_hazard(self, row: int):
        title = self.store.hazards[row].title or "this hazard"
        if QMessageBox.question(self, "Remove hazard", f"Remove {title}?") == QMessageBox.Yes:
            self.store.remove_hazard(row)

    # ----- edits + clipboard -----
    def _edit_field(self, obj, attr: str, value: str):
        setattr(obj, attr, value)
        self.store.autosave_now()
        self._sync.request()

    def _copy_hazard(self, row: int):
        self.store.copy_hazard(row)
        self.statusBar().showMessage("Hazard copied", 2000)

    def _paste_hazard(self, row: int):
        if self.store.paste_hazard(row) is None:
            self.statusBar().showMessage("Clipboard does not hold a hazard", 3000)

    def _copy_item(self, ref: ItemRef):
        if self.store.copy_item(ref):
            self.statusBar().showMessage(f"{ref.kind.capitalize()} copied", 2000)

    def _paste_item(self, ref: ItemRef):
        if self.store.paste_item(ref) is None:
            self.statusBar().showMessage(f"Clipboard does not hold a matching {ref.kind}", 3000)

    # ==========================
    # risk matrix tab
    # ==========================
    def _build_risk_matrix_page(self) -> QWidget:
        page = QWidget()
        v = QVBoxLayout(page)
        v.addWidget(_button_row(
            _button("Import risk matrix…", self._action_import_risk_matrix),
            _button("Export risk matrix…", self._action_export_risk_matrix),
            _button("Load default matrix", self._action_default_risk_matrix),
        ))
        v.addWidget(QLabel("Risk matrix (double-click a cell to change its risk level)"))
        self.matrix_table = QTableWidget(self)
        self.matrix_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.matrix_table.cellDoubleClicked.connect(self._cycle_matrix_cell)
        v.addWidget(self.matrix_table, 1)
        v.addWidget(QLabel("Severity descriptions"))
        self.severity_table = QTableWidget(self)
        self.severity_table.itemChanged.connect(self._on_severity_description_changed)
        self.severity_table.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        v.addWidget(self.severity_table, 2)
        return page

    def _render_risk_matrix_view(self):
        matrix = self.store.risk_matrix
        mt = self.matrix_table
        mt.clear()
        mt.setRowCount(len(matrix.severity))
        mt.setColumnCount(len(matrix.likelihood))
        mt.setHorizontalHeaderLabels([lvl.label for lvl in matrix.likelihood])
        mt.setVerticalHeaderLabels([lvl.label for lvl in matrix.severity])
        for r, sev in enumerate(matrix.severity):
            for c, lik in enumerate(matrix.likelihood):
                level = matrix.resolve(sev.id, lik.id)
                item = QTableWidgetItem(level.label if level else "?")
                item.setTextAlignment(Qt.AlignCenter)
                item.setBackground(QColor(level.color if level else "#CCCCCC"))
                if level:
                    item.setForeground(QColor("#FFFFFF"))
                mt.setItem(r, c, item)

        st = self.severity_table
        block = st.blockSignals(True)
        st.clear()
        st.setRowCount(len(matrix.severity))
        st.setColumnCount(len(SEVERITY_CATEGORIES))
        st.setHorizontalHeaderLabels([c.capitalize() for c in SEVERITY_CATEGORIES])
        st.setVerticalHeaderLabels([lvl.label for lvl in matrix.severity])
        for r, sev in enumerate(matrix.severity):
            for c, cat in enumerate(SEVERITY_CATEGORIES):
                st.setItem(r, c, QTableWidgetItem(matrix.severity_description(sev.id, cat)))
        st.resizeRowsToContents()
        st.blockSignals(block)

    def _cycle_matrix_cell(self, row: int, col: int):
        matrix = self.store.risk_matrix
        if not matrix.risk_levels:
            return
        sev = matrix.severity[row]
        lik = matrix.likelihood[col]
        current = matrix.resolve(sev.id, lik.id)
        ids = [lvl.id for lvl in matrix.risk_levels]
        nxt = ids[(ids.index(current.id) + 1) % len(ids)] if current and current.id in ids else ids[0]
        matrix.set_cell(lik.id, sev.id, nxt)
        self.store.notify_changed()

    def _on_severity_description_changed(self, item: QTableWidgetItem):
        matrix = self.store.risk_matrix
        sev = matrix.severity[item.row()]
        cat = SEVERITY_CATEGORIES[item.column()]
        matrix.severity_descriptions.setdefault(sev.id, {})[cat] = item.text()
        self.store.autosave_now()

    def _action_import_risk_matrix(self):
        path, _ = QFileDialog.getOpenFileName(self, "Import risk matrix", "", DOCUMENT_FILTER)
        if not path:
            return
        try:
            self.store.risk_matrix.load_config(read_risk_config(path))
        except Exception as e:
            QMessageBox.critical(self, "Import failed", str(e))
            return
        self.store.notify_changed()
        self.statusBar().showMessage(f"Risk matrix imported from {os.path.basename(path)}", 3000)

    def _action_export_risk_matrix(self):
        path, _ = QFileDialog.getSaveFileName(self, "Export risk matrix", "risk_matrix.json", DOCUMENT_FILTER)
        if not path:
            return
        try:
            write_risk_config(path, self.store.risk_matrix)
        except Exception as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"Risk matrix saved to {os.path.basename(path)}", 3000)

    def _action_default_risk_matrix(self):
        if QMessageBox.question(self, "Risk matrix", "Replace the risk matrix with the 5x5 default?") != QMessageBox.Yes:
            return
        self.store.set_risk_matrix(RiskMatrix.default())

    # ==========================
    # file actions
    # ==========================
    def _action_add_hazard(self):
        self.store.add_hazard()

    def _action_clear_all(self):
        if QMessageBox.question(self, "New", "Clear all hazards?") == QMessageBox.Yes:
            self.store.clear()

    def _action_export_excel(self):
        path, _ = QFileDialog.getSaveFileName(self, "Export Excel", self.config.export.file_name, "Excel (*.xlsx)")
        if not path:
            return
        report = ExportReport()
        self.statusBar().showMessage("Exporting…")
        try:
            export_xlsx(path, self.store.hazards, self.store.risk_matrix, self.config.export, report)
        except Exception as e:
            QMessageBox.critical(self, "Export failed", str(e))
            self.statusBar().clearMessage()
            return
        if report.warnings:
            QMessageBox.warning(self, "Export", "Exported with warnings:\n" + "\n".join(report.warnings))
        self.statusBar().showMessage(f"Exported to {os.path.basename(path)}", 3000)


class EnhancedMainWindow(MainWindow):
    """Adds the menubar (File/Edit/Options/Help), recent files and the current-path title."""

    def __init__(self, store: HazardStore, config: AppConfig, settings: QtCore.QSettings):
        super().__init__(store, config, settings)
        self._recent_files: List[str] = []
        self._current_path: Optional[str] = None
        self._load_recent_files()
        self._rebuild_menubar()
        self._apply_qss_menu_theme()

    # ---------------------- Menubar ----------------------
    def _rebuild_menubar(self):
        mb = self.menuBar(); mb.clear()
        m_file = mb.addMenu("&File")
        self.act_new = QAction("New", self); self.act_new.setShortcut("Ctrl+Shift+N")
        self.act_open = QAction("Open…", self); self.act_open.setShortcut("Ctrl+O")
        self.act_save = QAction("Save", self); self.act_save.setShortcut("Ctrl+S")
        self.act_save_as = QAction("Save As…", self)
        self.act_export_xlsx = QAction("Export Excel…", self); self.act_export_xlsx.setShortcut("Ctrl+Shift+E")
        self.act_exit = QAction("Exit", self)
        self.act_new.triggered.connect(self._action_clear_all)
        self.act_open.triggered.connect(self._file_open)
        self.act_save.triggered.connect(self._file_save)
        self.act_save_as.triggered.connect(self._file_save_as)
        self.act_export_xlsx.triggered.connect(self._action_export_excel)
        self.act_exit.triggered.connect(self.close)
        m_file.addAction(self.act_new)
        m_file.addAction(self.act_open)
        self._recent_menu = m_file.addMenu("Open Recent")
        self._rebuild_recent_menu()
        m_file.addSeparator()
        m_file.addAction(self.act_save)
        m_file.addAction(self.act_save_as)
        m_file.addSeparator()
        m_file.addAction(self.act_export_xlsx)
        m_file.addSeparator()
        m_file.addAction(self.act_exit)

        m_edit = mb.addMenu("&Edit")
        self.act_add_hazard = QAction("Add hazard", self); self.act_add_hazard.setShortcut("Ctrl+N")
        self.act_add_hazard.triggered.connect(self._action_add_hazard)
        m_edit.addAction(self.act_add_hazard)

        m_opts = mb.addMenu("&Options")
        self.act_autosave = QAction("Autosave", self, checkable=True, checked=self.store.autosave)
        self.act_autosave.toggled.connect(self._set_autosave)
        m_opts.addAction(self.act_autosave)

        m_help = mb.addMenu("&Help")
        act_shortcuts = QAction("Keyboard Shortcuts", self)
        act_shortcuts.triggered.connect(lambda: QMessageBox.information(
            self, "Shortcuts",
            "New: Ctrl+Shift+N\nOpen: Ctrl+O\nSave: Ctrl+S\nExport Excel: Ctrl+Shift+E\nAdd hazard: Ctrl+N"))
        m_help.addAction(act_shortcuts)

    def _apply_qss_menu_theme(self):
        bg0 = "#FFFFFF"; border = "#DADCE0"
        qss = f"""
        QMenuBar {{ background: {bg0}; border-bottom: 1px solid {border}; }}
        QMenuBar::item {{ padding: 4px 10px; margin: 0 2px; border-radius: 6px; }}
        QMenuBar::item:selected {{ background: #EEF5FF; color: #111; }}
        QMenu {{ background: {bg0}; border: 1px solid {border}; padding: 4px 0; }}
        QMenu::item {{ padding: 6px 14px; border-radius: 6px; }}
        QMenu::item:selected {{ background: #EEF5FF; color: #111; }}
        """
        self.setStyleSheet(self.styleSheet() + qss)

    def _set_autosave(self, enabled: bool):
        self.store.autosave = enabled
        if enabled:
            self.store.save()
        self.statusBar().showMessage(f"Autosave {'on' if enabled else 'off'}", 2000)

    # ---------------------- Open / Save ----------------------
    def _set_current_path(self, path: Optional[str]):
        self._current_path = path
        base = os.path.basename(path) if path else None
        self.setWindowTitle(f"HAZID Workshop — {base}" if base else "HAZID Workshop")
        if path:
            self._add_recent_file(path)

    def _file_open(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open", "", DOCUMENT_FILTER)
        if not path:
            return
        self._file_open_direct(path)

    def _file_open_direct(self, path: str):
        try:
            self.store.replace_from_document(read_document_data(path))
        except Exception as e:
            QMessageBox.critical(self, "Import failed", str(e))
            return
        self.statusBar().showMessage(f"Imported {os.path.basename(path)}", 2000)
        self._set_current_path(path)

    def _file_save(self):
        if not self._current_path:
            return self._file_save_as()
        self._write_to(self._current_path)

    def _file_save_as(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save As", "hazid.json", DOCUMENT_FILTER)
        if not path:
            return
        if self._write_to(path):
            self._set_current_path(path)

    def _write_to(self, path: str) -> bool:
        try:
            write_document(path, self.store.hazards, self.store.risk_matrix)
        except Exception as e:
            QMessageBox.critical(self, "Save failed", str(e))
            return False
        self.statusBar().showMessage(f"Saved to {os.path.basename(path)}", 2000)
        return True

    # Recent list stored in the same QSettings
    def _load_recent_files(self):
        rf = self.settings.value("recent_files", [])
        if isinstance(rf, str):
            rf = [rf]
        if isinstance(rf, list):
            self._recent_files = [s for s in rf if isinstance(s, str) and os.path.exists(s)]

    def _save_recent_files(self):
        self.settings.setValue("recent_files", self._recent_files[:10])

    def _add_recent_file(self, path: str):
        ap = os.path.abspath(path)
        self._recent_files = [p for p in self._recent_files if os.path.abspath(p) != ap]
        self._recent_files.insert(0, ap)
        self._recent_files = self._recent_files[:10]
        self._save_recent_files()
        self._rebuild_recent_menu()

    def _rebuild_recent_menu(self):
        if not hasattr(self, "_recent_menu"):
            return
        self._recent_menu.clear()
        if not self._recent_files:
            dummy = QAction("(Empty)", self); dummy.setEnabled(False)
            self._recent_menu.addAction(dummy)
            return
        for p in self._recent_files:
            act = QAction(p, self)
            act.triggered.connect(lambda _=None, path=p: self._file_open_direct(path))
            self._recent_menu.addAction(act)
        self._recent_menu.addSeparator()
        clear_act = QAction("Clear Recent", self)

        def _clear():
            self._recent_files = []
            self._save_recent_files()
            self._rebuild_recent_menu()
        clear_act.triggered.connect(_clear)
        self._recent_menu.addAction(clear_act)


# ==========================
# Self tests (no GUI)
# ==========================

def _assert_equal(actual, expected, label):
    if actual != expected:
        raise AssertionError(f"{label}: expected {expected}, got {actual}")


class _FixedHeights:
    """Segments with known natural heights; no widgets needed."""

    def __init__(self, natural: Dict[SegmentKey, int]):
        self.natural = natural
        self.forced: Dict[SegmentKey, int] = {}

    def has_segment(self, key):
        return key in self.natural

    def clear_forced_height(self, key):
        self.forced.pop(key, None)

    def natural_height(self, key):
        return self.natural[key]

    def force_height(self, key, height):
        self.forced[key] = height


def run_selftests() -> None:
    matrix = RiskMatrix.default()
    _assert_equal(matrix.label_for("1", "A"), "Low", "lowest cell")
    _assert_equal(matrix.label_for("5", "E"), "High", "highest cell")
    _assert_equal(matrix.label_for("3", "C"), "Medium", "centre cell")
    _assert_equal(matrix.label_for("", "C"), "", "unrated")

    hazard = Hazard(
        causes=[Cause(prevention_measures=[Measure(), Measure()]), Cause(prevention_measures=[Measure()])],
        consequences=[Consequence(mitigation_measures=[Measure()]),
                      Consequence(mitigation_measures=[Measure(), Measure(), Measure()])],
    )
    _assert_equal(block_row_count(hazard), 4, "block rows")
    alloc = allocate_block(hazard)
    _assert_equal([s.row_span for s in alloc.causes], [2, 2], "cause spans")
    _assert_equal([s.row_span for s in alloc.consequences], [1, 3], "consequence spans")
    _assert_equal([m.row_span for m in alloc.causes[1].measures], [2], "last measure absorbs")
    _assert_equal(block_row_count(Hazard()), 1, "empty hazard")

    keys = segment_keys(0, alloc)
    surface = _FixedHeights({k: 10 + 5 * n for n, k in enumerate(keys)})
    sync_segment_heights(surface, {0: alloc})
    first = [k for k in keys if k.kind in ("cause", "cause-measures") and k.item_index == 0]
    _assert_equal(len({surface.forced[k] for k in first}), 1, "cause group aligned")
    print("Selftests OK (risk matrix, block rows, allocation, height sync).")


# ==========================
# main
# ==========================

def main():
    if "--selftest" in sys.argv:
        run_selftests()
        sys.exit(0)
    config = load_config()
    app = QApplication(sys.argv)
    settings = QtCore.QSettings("HAZID", "HAZID-Workshop")
    store = HazardStore(SettingsKeyValueStore(settings), config.storage_key, config.autosave)
    store.load()
    store.ensure_seed()
    win = EnhancedMainWindow(store, config, settings)
    win.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
