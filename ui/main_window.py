from __future__ import annotations

import json
import os
from typing import Optional

from PyQt6.QtCore import QRect, QSize, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import (
    QAction,
    QColor,
    QFont,
    QFontDatabase,
    QKeySequence,
    QPainter,
    QShortcut,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
)
from PyQt6.QtWidgets import (
    QApplication,
    QDialog,
    QFileDialog,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QSpinBox,
    QSplitter,
    QTableView,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QTextEdit,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from core.breakpoints import Breakpoint, BreakpointManager, BreakpointType
from core.config import EmulatorConfig, load_config
from core.emulator import Emulator, StepOutcome
from core.errors import EmulationError
from core.instructions import get_instruction_defs
from core.model import Program
from core.program import parse_assembly
from core.registers import FLAG_ORDER, REGISTER_ORDER, RegisterFile
from core.stack import StackMemory
from ui.breakpoints import REMOVE_COLUMN, AddBreakpointDialog, BreakpointsTableModel

CHANGED_BG = QColor("#ffb86c")
CHANGED_FG = QColor("#1a1b26")


class AsmHighlighter(QSyntaxHighlighter):
    def __init__(self, parent) -> None:
        super().__init__(parent)
        self.mnemonic_format = QTextCharFormat()
        self.mnemonic_format.setForeground(QColor("#ff79c6"))
        self.mnemonic_format.setFontWeight(QFont.Weight.Bold)

        self.register_format = QTextCharFormat()
        self.register_format.setForeground(QColor("#bd93f9"))

        self.number_format = QTextCharFormat()
        self.number_format.setForeground(QColor("#ffb86c"))

        self.comment_format = QTextCharFormat()
        self.comment_format.setForeground(QColor("#6272a4"))

        self.mnemonics = {d.mnemonic for d in get_instruction_defs()}
        self.registers = set(REGISTER_ORDER) | {f"W{n}" for n in range(31)} | {"XZR", "WZR"}

    def highlightBlock(self, text: str) -> None:
        if not text.strip():
            return

        cuts = [pos for pos in (text.find("//"), text.find(";")) if pos >= 0]
        if cuts:
            comment_index = min(cuts)
            self.setFormat(comment_index, len(text) - comment_index, self.comment_format)
            text = text[:comment_index]

        code = text.split(":")[-1] if ":" in text else text
        offset = len(text) - len(code)
        parts = code.strip().split(None, 1)
        if parts and parts[0].upper() in self.mnemonics:
            start = offset + code.upper().find(parts[0].upper())
            self.setFormat(start, len(parts[0]), self.mnemonic_format)

        for tok in code.replace(",", " ").replace("[", " ").replace("]", " ").split():
            upper = tok.upper()
            start = offset + code.find(tok)
            if upper in self.registers:
                self.setFormat(start, len(tok), self.register_format)
            elif tok.startswith("#") or tok.lower().startswith("0x"):
                self.setFormat(start, len(tok), self.number_format)


class LineNumberArea(QWidget):
    def __init__(self, editor: "CodeEditor") -> None:
        super().__init__(editor)
        self.editor = editor

    def sizeHint(self) -> QSize:
        return QSize(self.editor.line_number_area_width(), 0)

    def paintEvent(self, event) -> None:
        self.editor.line_number_area_paint_event(event)

    def mousePressEvent(self, event) -> None:
        self.editor.line_number_area_mouse_event(event)


class CodeEditor(QPlainTextEdit):
    breakpoint_toggle_requested = pyqtSignal(int)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._line_number_bg = QColor("#1e1f29")
        self._line_number_fg = QColor("#6272a4")
        self._breakpoint_area_width = 14
        self._breakpoint_enabled_color = QColor("#ff5555")
        self._breakpoint_disabled_color = QColor("#6272a4")
        self._breakpoint_temporary_color = QColor("#ffb86c")
        self.breakpoint_lines: dict[int, Breakpoint] = {}
        self.line_number_area = LineNumberArea(self)

        self.blockCountChanged.connect(self.update_line_number_area_width)
        self.updateRequest.connect(self.update_line_number_area)
        self.update_line_number_area_width(0)

    def line_number_area_width(self) -> int:
        digits = max(1, len(str(self.blockCount())))
        return self._breakpoint_area_width + 10 + self.fontMetrics().horizontalAdvance("9") * digits

    def set_breakpoint_lines(self, lines: dict[int, Breakpoint]) -> None:
        self.breakpoint_lines = lines
        self.line_number_area.update()

    def update_line_number_area_width(self, _block_count: int) -> None:
        self.setViewportMargins(self.line_number_area_width(), 0, 0, 0)

    def update_line_number_area(self, rect: QRect, dy: int) -> None:
        if dy:
            self.line_number_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())
        if rect.contains(self.viewport().rect()):
            self.update_line_number_area_width(0)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        contents = self.contentsRect()
        self.line_number_area.setGeometry(
            QRect(contents.left(), contents.top(), self.line_number_area_width(), contents.height())
        )

    def line_number_area_paint_event(self, event) -> None:
        painter = QPainter(self.line_number_area)
        painter.fillRect(event.rect(), self._line_number_bg)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = self.blockBoundingGeometry(block).translated(self.contentOffset()).top()
        bottom = top + self.blockBoundingRect(block).height()

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                line_no = block_number + 1
                bp = self.breakpoint_lines.get(line_no)
                if bp:
                    radius = 5
                    center_x = self._breakpoint_area_width // 2
                    center_y = int(top + (self.fontMetrics().height() / 2))
                    if not bp.enabled:
                        painter.setPen(self._breakpoint_disabled_color)
                        painter.setBrush(Qt.BrushStyle.NoBrush)
                    else:
                        color = (
                            self._breakpoint_temporary_color
                            if bp.type == BreakpointType.TEMPORARY_ADDRESS
                            else self._breakpoint_enabled_color
                        )
                        painter.setPen(color)
                        painter.setBrush(color)
                    painter.drawEllipse(center_x - radius, center_y - radius, radius * 2, radius * 2)
                painter.setPen(self._line_number_fg)
                painter.drawText(
                    self._breakpoint_area_width,
                    int(top),
                    self.line_number_area.width() - self._breakpoint_area_width - 6,
                    int(self.fontMetrics().height()),
                    Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                    str(line_no),
                )
            block = block.next()
            top = bottom
            bottom = top + self.blockBoundingRect(block).height()
            block_number += 1

    def line_number_area_mouse_event(self, event) -> None:
        if event.button() != Qt.MouseButton.LeftButton:
            return
        cursor = self.cursorForPosition(event.position().toPoint())
        self.breakpoint_toggle_requested.emit(cursor.blockNumber() + 1)


class MainWindow(QMainWindow):
    def __init__(self, config: Optional[EmulatorConfig] = None) -> None:
        super().__init__()
        self.setWindowTitle("ARM64 Debugger")
        self.resize(1200, 760)

        self.config = config or load_config()
        self.current_file: Optional[str] = None
        self.source_dirty = True
        self.updating_views = False
        self.run_state = "Ready"
        self.prev_registers: dict[str, int] = {}
        self.prev_stack: bytes = b""
        self._skip_breakpoint_id: Optional[int] = None

        self.registers = RegisterFile()
        self.stack = StackMemory(self.config.stack_base, self.config.stack_size)
        self.program = Program(instructions=[], labels={})
        self.emulator = Emulator(self.program, self.registers, self.stack)
        self.emulator.reset()
        self.breakpoint_manager = BreakpointManager()
        self.breakpoint_manager.on_change(self._on_breakpoints_changed)

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.on_timer_step)

        self._build_ui()
        self._setup_shortcuts()
        self._load_breakpoints()
        self._update_views()

    # -- layout -------------------------------------------------------------

    def _build_ui(self) -> None:
        font = self._default_font()
        self.editor = CodeEditor()
        self.editor.setFont(font)
        self.editor.textChanged.connect(self.on_text_changed)
        self.editor.breakpoint_toggle_requested.connect(self.on_gutter_breakpoint_toggle)
        self.highlighter = AsmHighlighter(self.editor.document())

        editor_panel = QWidget()
        editor_layout = QVBoxLayout(editor_panel)
        editor_layout.addWidget(self._build_controls())
        editor_layout.addWidget(self.editor)

        self.register_table = QTableWidget(len(REGISTER_ORDER), 3)
        self.register_table.setHorizontalHeaderLabels(["Register", "Hex", "Dec"])
        self.register_table.verticalHeader().setVisible(False)
        self.register_table.setFont(font)
        self.register_table.horizontalHeader().setStretchLastSection(True)
        self.register_table.cellChanged.connect(self.on_register_edit)

        self.flag_table = QTableWidget(len(FLAG_ORDER), 2)
        self.flag_table.setHorizontalHeaderLabels(["Flag", "Value"])
        self.flag_table.verticalHeader().setVisible(False)
        self.flag_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)

        state_panel = QWidget()
        state_layout = QVBoxLayout(state_panel)
        state_layout.setContentsMargins(0, 0, 0, 0)
        state_layout.addWidget(self.register_table, 3)
        state_layout.addWidget(self.flag_table, 1)

        self.stack_table = QTableWidget(0, 3)
        self.stack_table.setHorizontalHeaderLabels(["Address", "Bytes", "ASCII"])
        self.stack_table.verticalHeader().setVisible(False)
        self.stack_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self.stack_table.setFont(font)
        self.stack_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.ResizeToContents)

        self.breakpoints_model = BreakpointsTableModel(self.breakpoint_manager, lambda: self.program, self)
        self.breakpoints_view = QTableView()
        self.breakpoints_view.setModel(self.breakpoints_model)
        self.breakpoints_view.clicked.connect(self.on_breakpoints_table_clicked)
        self.breakpoints_view.horizontalHeader().setStretchLastSection(True)

        self.side_tabs = QTabWidget()
        self.side_tabs.addTab(state_panel, "Registers")
        self.side_tabs.addTab(self.stack_table, "Stack")
        self.side_tabs.addTab(self.breakpoints_view, "Breakpoints")
        self.side_tabs.addTab(self._build_instruction_tab(), "Instructions")

        self.log_output = QPlainTextEdit()
        self.log_output.setReadOnly(True)
        self.log_output.setFont(font)

        top_splitter = QSplitter(Qt.Orientation.Horizontal)
        top_splitter.addWidget(editor_panel)
        top_splitter.addWidget(self.side_tabs)
        top_splitter.setSizes([700, 500])

        main_splitter = QSplitter(Qt.Orientation.Vertical)
        main_splitter.addWidget(top_splitter)
        main_splitter.addWidget(self.log_output)
        main_splitter.setSizes([600, 160])
        self.setCentralWidget(main_splitter)

        self.state_label = QLabel()
        self.line_label = QLabel()
        self.statusBar().addWidget(self.state_label)
        self.statusBar().addPermanentWidget(self.line_label)

        self.file_menu = self.menuBar().addMenu("File")
        self.debug_menu = self.menuBar().addMenu("Debug")
        for menu, text, shortcut, handler in (
            (self.file_menu, "New", QKeySequence.StandardKey.New, self.new_file),
            (self.file_menu, "Open", QKeySequence.StandardKey.Open, self.open_file),
            (self.file_menu, "Save", QKeySequence.StandardKey.Save, self.save_file),
            (self.file_menu, "Save As", QKeySequence.StandardKey.SaveAs, self.save_file_as),
            (self.file_menu, "Exit", None, self.close),
            (self.debug_menu, "Toggle Breakpoint", None, self.toggle_breakpoint_at_cursor),
            (self.debug_menu, "Break Here", None, self.break_here),
            (self.debug_menu, "Add Breakpoint...", None, self.add_breakpoint),
        ):
            action = QAction(text, self)
            if shortcut is not None:
                action.setShortcut(shortcut)
            action.triggered.connect(handler)
            menu.addAction(action)

    def _build_controls(self) -> QWidget:
        widget = QWidget()
        layout = QHBoxLayout(widget)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(12)

        self.assemble_button = QToolButton()
        self.play_button = QToolButton()
        self.pause_button = QToolButton()
        self.step_button = QToolButton()
        self.reset_button = QToolButton()
        for button, text, tip, handler in (
            (self.assemble_button, "Assemble", "Assemble (Ctrl+B)", self.parse_current_program),
            (self.play_button, "Run", "Run (F5)", self.play),
            (self.pause_button, "Pause", "Pause (Shift+F5)", self.pause),
            (self.step_button, "Step", "Step (F10)", self.step_once),
            (self.reset_button, "Reset", "Reset (Ctrl+Shift+F5)", self.reset_state),
        ):
            button.setText(text)
            button.setToolTip(tip)
            button.clicked.connect(handler)
            layout.addWidget(button)

        layout.addStretch(1)
        layout.addWidget(QLabel("Steps/s"))
        self.rate_spin = QSpinBox()
        self.rate_spin.setRange(1, 1000)
        interval = max(1, self.config.step_interval_ms)
        self.rate_spin.setValue(max(1, min(1000, 1000 // interval)))
        self.rate_spin.valueChanged.connect(self._update_timer_interval)
        layout.addWidget(self.rate_spin)
        return widget

    def _build_instruction_tab(self) -> QWidget:
        defs = get_instruction_defs()
        table = QTableWidget(len(defs), 4)
        table.setHorizontalHeaderLabels(["Mnemonic", "Meaning", "Syntax", "Flags"])
        table.verticalHeader().setVisible(False)
        table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        table.horizontalHeader().setStretchLastSection(True)
        for row, defn in enumerate(defs):
            for column, text in enumerate((defn.mnemonic, defn.summary, defn.syntax, defn.flags)):
                table.setItem(row, column, QTableWidgetItem(text))
        return table

    def _setup_shortcuts(self) -> None:
        self.shortcuts: list[QShortcut] = []

        shortcut_map = [
            ("Ctrl+B", self.parse_current_program),
            ("F5", self.play),
            ("Shift+F5", self.pause),
            ("F9", self.toggle_breakpoint_at_cursor),
            ("Ctrl+F10", self.break_here),
            ("F10", self.step_once),
            ("Ctrl+Shift+F5", self.reset_state),
        ]
        for sequence, handler in shortcut_map:
            shortcut = QShortcut(QKeySequence(sequence), self)
            shortcut.activated.connect(handler)
            self.shortcuts.append(shortcut)

    def _default_font(self) -> QFont:
        preferred = ["JetBrains Mono", "Cascadia Code", "Fira Code", "DejaVu Sans Mono", "Consolas", "Menlo"]
        available = set(QFontDatabase.families())
        for name in preferred:
            if name in available:
                return QFont(name, 11)
        return QFont("Monospace", 11)

    # -- files --------------------------------------------------------------

    def _breakpoints_path(self) -> str:
        base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        return os.path.join(base_dir, ".arm64_debugger_breakpoints.json")

    def _load_breakpoints(self) -> None:
        path = self._breakpoints_path()
        if not os.path.exists(path):
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                self.breakpoint_manager.load_json(json.load(f))
        except (OSError, ValueError) as exc:
            self.log(f"Could not load breakpoints: {exc}")

    def _save_breakpoints(self) -> None:
        try:
            with open(self._breakpoints_path(), "w", encoding="utf-8") as f:
                json.dump(self.breakpoint_manager.to_json(), f, indent=2)
        except OSError as exc:
            self.log(f"Could not save breakpoints: {exc}")

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._save_breakpoints()
        super().closeEvent(event)

    def open_path(self, path: str) -> bool:
        try:
            with open(path, "r", encoding="utf-8") as file:
                self.editor.setPlainText(file.read())
        except OSError as exc:
            QMessageBox.warning(self, "Open Failed", str(exc))
            return False
        self._set_current_file(path)
        self.source_dirty = True
        self.log(f"Opened {path}")
        return True

    def _set_current_file(self, path: Optional[str]) -> None:
        self.current_file = os.path.abspath(path) if path else None
        title = "ARM64 Debugger"
        self.setWindowTitle(f"{title} - {self.current_file}" if self.current_file else title)

    def new_file(self) -> None:
        self.editor.clear()
        self._set_current_file(None)
        self.source_dirty = True

    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Open assembly", "", "Assembly (*.s *.asm *.txt);;All Files (*)")
        if path:
            self.open_path(path)

    def save_file(self) -> None:
        if not self.current_file:
            self.save_file_as()
            return
        try:
            with open(self.current_file, "w", encoding="utf-8") as file:
                file.write(self.editor.toPlainText())
            self.log(f"Saved {self.current_file}")
        except OSError as exc:
            QMessageBox.warning(self, "Save Failed", str(exc))

    def save_file_as(self) -> None:
        path, _ = QFileDialog.getSaveFileName(self, "Save assembly", "", "Assembly (*.s *.asm *.txt);;All Files (*)")
        if not path:
            return
        self._set_current_file(path)
        self.save_file()

    def on_text_changed(self) -> None:
        self.source_dirty = True

    # -- breakpoints --------------------------------------------------------

    def _on_breakpoints_changed(self) -> None:
        lines: dict[int, Breakpoint] = {}
        for bp in self.breakpoint_manager.address_breakpoints():
            instr = self.program.instruction_at(bp.address) if bp.address is not None else None
            if instr is not None:
                lines[instr.line_no] = bp
        if hasattr(self, "editor"):
            self.editor.set_breakpoint_lines(lines)

    def _address_for_editor_line(self, line_no: int) -> Optional[int]:
        if not self.ensure_program():
            return None
        address = self.program.address_for_line(line_no)
        if address is None:
            self.log(f"No instruction on line {line_no}.")
        return address

    def on_gutter_breakpoint_toggle(self, line_no: int) -> None:
        address = self._address_for_editor_line(line_no)
        if address is not None:
            self.breakpoint_manager.toggle_address(address)

    def toggle_breakpoint_at_cursor(self) -> None:
        self.on_gutter_breakpoint_toggle(self.editor.textCursor().blockNumber() + 1)

    def break_here(self) -> None:
        address = self._address_for_editor_line(self.editor.textCursor().blockNumber() + 1)
        if address is None:
            return
        self.breakpoint_manager.add_address(address, temporary=True)
        self.play()

    def add_breakpoint(self) -> None:
        dialog = AddBreakpointDialog(self.breakpoint_manager, self.program, self)
        if dialog.exec() == QDialog.DialogCode.Accepted:
            self.log(f"Breakpoint {dialog.added_id} added.")

    def on_breakpoints_table_clicked(self, index) -> None:
        bp = self.breakpoints_model.breakpoint_at(index.row())
        if bp is None:
            return
        if index.column() == REMOVE_COLUMN:
            self.breakpoint_manager.remove(bp.id)
        elif bp.address is not None:
            instr = self.program.instruction_at(bp.address)
            if instr is not None:
                self._jump_to_line(instr.line_no)

    def _jump_to_line(self, line_no: int) -> None:
        block = self.editor.document().findBlockByNumber(line_no - 1)
        if block.isValid():
            self.editor.setTextCursor(QTextCursor(block))
            self.editor.centerCursor()

    def _check_breakpoints_before_step(self) -> bool:
        pc = self.registers.read_pc()
        should_break, bp_id, reason = self.breakpoint_manager.should_break(pc, self.registers)
        if not should_break or bp_id is None:
            return False
        if self._skip_breakpoint_id == bp_id:
            self._skip_breakpoint_id = None
            return False
        removed = self.breakpoint_manager.increment_hit(bp_id)
        bp = self.breakpoint_manager.get(bp_id)
        self._skip_breakpoint_id = bp_id if bp and bp.type == BreakpointType.ADDRESS and not removed else None
        self.timer.stop()
        self.set_state("Paused")
        self.log(f"Breakpoint hit: {reason}")
        self._update_views()
        return True

    # -- execution ----------------------------------------------------------

    def parse_current_program(self) -> bool:
        try:
            program = parse_assembly(self.editor.toPlainText())
        except EmulationError as exc:
            self.set_state("Error")
            self.log(f"Parse error (line {exc.line_no}): {exc.message}")
            if exc.text:
                self.log(f"  {exc.text}")
            return False

        self.program = program
        self.emulator = Emulator(self.program, self.registers, self.stack)
        self.emulator.reset()
        self.prev_registers = {}
        self.prev_stack = b""
        self.source_dirty = False
        self._skip_breakpoint_id = None
        self.breakpoint_manager.set_valid_addresses(instr.address for instr in self.program.instructions)
        self.set_state("Ready")
        self.log(f"Assembled {len(self.program.instructions)} instructions.")
        self._update_views()
        return True

    def ensure_program(self) -> bool:
        if self.source_dirty or not self.program.instructions:
            return self.parse_current_program()
        return True

    def play(self) -> None:
        if not self.ensure_program():
            return
        if self.emulator.halted:
            self.log("Execution halted. Reset to run again.")
            return
        self.set_state("Running")
        self._update_timer_interval()
        self.timer.start()

    def pause(self) -> None:
        self.timer.stop()
        if self.run_state == "Running":
            self.set_state("Paused")

    def step_once(self) -> None:
        self.timer.stop()
        if not self.ensure_program():
            return
        if self.emulator.halted:
            self.log("Execution halted. Reset to run again.")
            self.set_state("Halted")
            return
        if self._check_breakpoints_before_step():
            return
        outcome = self.emulator.step()
        self.handle_step_outcome(outcome)
        self._update_views()
        if not outcome.error and not outcome.halted:
            self.set_state("Paused")

    def on_timer_step(self) -> None:
        if self._check_breakpoints_before_step():
            return
        if self.emulator.steps >= self.config.max_steps:
            self.timer.stop()
            self.set_state("Error")
            self.log(f"Aborting: exceeded max step count ({self.config.max_steps})")
            self.emulator.halted = True
            return
        outcome = self.emulator.step()
        self.handle_step_outcome(outcome)
        self._update_views()
        if outcome.error or outcome.halted:
            self.timer.stop()

    def handle_step_outcome(self, outcome: StepOutcome) -> None:
        if outcome.error:
            self.set_state("Error")
            self.log(f"HALT due to error: {outcome.error.message}")
            if outcome.error.line_no:
                self.log(f"Line {outcome.error.line_no}: {outcome.error.text}")
            self.emulator.halted = True
            return
        if outcome.halted:
            self.set_state("Halted")
            self.log(f"Program finished. Final PC = 0x{outcome.pc:X}")

    def reset_state(self) -> None:
        self.timer.stop()
        if self.source_dirty or not self.program.instructions:
            self.ensure_program()
            return
        self.emulator.reset()
        self.prev_registers = {}
        self.prev_stack = b""
        self._skip_breakpoint_id = None
        self.set_state("Ready")
        self._update_views()
        self.log("CPU state reset.")

    def _update_timer_interval(self) -> None:
        self.timer.setInterval(max(1, int(1000 / self.rate_spin.value())))

    # -- views --------------------------------------------------------------

    def _update_views(self) -> None:
        self.updating_views = True
        try:
            self._update_register_view()
            self._update_flag_view()
            self._update_stack_view()
            self._highlight_current_line()
            self._update_status()
        finally:
            self.updating_views = False

    def _update_register_view(self) -> None:
        for row, reg in enumerate(REGISTER_ORDER):
            name_item = QTableWidgetItem(reg)
            name_item.setFlags(Qt.ItemFlag.ItemIsEnabled)
            value = self.registers.get_reg(reg)
            value_item = QTableWidgetItem(f"0x{value:016X}")
            value_item.setData(Qt.ItemDataRole.UserRole, reg)
            dec_item = QTableWidgetItem(str(value))
            dec_item.setFlags(Qt.ItemFlag.ItemIsEnabled)
            prev_value = self.prev_registers.get(reg)
            if prev_value is not None and prev_value != value:
                for item in (value_item, dec_item):
                    item.setBackground(CHANGED_BG)
                    item.setForeground(CHANGED_FG)
            self.register_table.setItem(row, 0, name_item)
            self.register_table.setItem(row, 1, value_item)
            self.register_table.setItem(row, 2, dec_item)
        self.prev_registers = {reg: self.registers.get_reg(reg) for reg in REGISTER_ORDER}

    def _update_flag_view(self) -> None:
        for row, flag in enumerate(FLAG_ORDER):
            self.flag_table.setItem(row, 0, QTableWidgetItem(flag))
            self.flag_table.setItem(row, 1, QTableWidgetItem(str(self.registers.get_flag(flag))))

    def _update_stack_view(self) -> None:
        per_line = 16
        data = self.stack.read_bytes(self.stack.base, self.stack.size)
        sp = self.registers.read_sp()
        rows = (len(data) + per_line - 1) // per_line
        self.stack_table.setRowCount(rows)
        for row in range(rows):
            chunk = data[row * per_line : (row + 1) * per_line]
            addr = self.stack.base + row * per_line
            addr_item = QTableWidgetItem(f"0x{addr:08X}")
            bytes_item = QTableWidgetItem(" ".join(f"{b:02X}" for b in chunk))
            ascii_item = QTableWidgetItem("".join(chr(b) if 32 <= b <= 126 else "." for b in chunk))
            if addr <= sp < addr + per_line:
                addr_item.setBackground(QColor("#f286c4"))
            if self.prev_stack and self.prev_stack[row * per_line : (row + 1) * per_line] != chunk:
                bytes_item.setBackground(CHANGED_BG)
                bytes_item.setForeground(CHANGED_FG)
            self.stack_table.setItem(row, 0, addr_item)
            self.stack_table.setItem(row, 1, bytes_item)
            self.stack_table.setItem(row, 2, ascii_item)
        self.prev_stack = data

    def _current_instruction_line(self) -> Optional[int]:
        instr = self.program.instruction_at(self.registers.read_pc())
        return instr.line_no if instr else None

    def _highlight_current_line(self) -> None:
        selections = []
        line_no = self._current_instruction_line()
        if line_no is not None:
            block = self.editor.document().findBlockByNumber(line_no - 1)
            if block.isValid():
                cursor = QTextCursor(block)
                cursor.select(QTextCursor.SelectionType.LineUnderCursor)
                selection = QTextEdit.ExtraSelection()
                selection.cursor = cursor
                selection.format.setBackground(QColor("#fff2cc"))
                selection.format.setForeground(QColor("#1e1f29"))
                selections.append(selection)
        self.editor.setExtraSelections(selections)

    def _update_status(self) -> None:
        self.state_label.setText(self.run_state)
        line_no = self._current_instruction_line()
        pc = self.registers.read_pc()
        self.line_label.setText(f"Line: {line_no} | PC: 0x{pc:X}" if line_no else f"Line: - | PC: 0x{pc:X}")

    def set_state(self, state: str) -> None:
        self.run_state = state
        self._update_status()

    def log(self, message: str) -> None:
        self.log_output.appendPlainText(message)

    def on_register_edit(self, row: int, column: int) -> None:
        if self.updating_views or column != 1:
            return
        item = self.register_table.item(row, column)
        if not item:
            return
        reg = item.data(Qt.ItemDataRole.UserRole)
        if not reg:
            return
        try:
            value = self._parse_value(item.text())
        except ValueError:
            self.log("Invalid register value.")
            self._update_views()
            return
        self.registers.set_reg(reg, value)
        self._update_views()

    def _parse_value(self, text: str) -> int:
        raw = text.strip()
        if raw.lower().startswith("0x"):
            return int(raw, 16)
        return int(raw, 10)


def run_app(path: Optional[str] = None, config: Optional[EmulatorConfig] = None) -> int:
    app = QApplication([])
    window = MainWindow(config)
    if path:
        window.open_path(path)
    window.show()
    return app.exec()
