from __future__ import annotations

from typing import Callable, Optional

from PyQt6.QtCore import QAbstractTableModel, QModelIndex, QObject, Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QWidget,
)

from core.breakpoints import ADDRESS_TYPES, REQUEST_KINDS, Breakpoint, BreakpointManager, BreakpointType
from core.model import Program
from core.registers import FLAG_ORDER, REGISTER_ORDER

REMOVE_COLUMN = 5


class BreakpointsTableModel(QAbstractTableModel):
    headers = ["On", "Kind", "Address", "Condition", "Hits", ""]

    def __init__(
        self,
        manager: BreakpointManager,
        program_provider: Callable[[], Program],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.manager = manager
        self.program_provider = program_provider
        self._rows: list[Breakpoint] = []
        self.manager.on_change(self.refresh)
        self.refresh()

    def refresh(self) -> None:
        self.beginResetModel()
        self._rows = self.manager.list_all()
        self.endResetModel()

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:  # type: ignore[override]
        return 0 if parent.isValid() else len(self.headers)

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role == Qt.ItemDataRole.DisplayRole and orientation == Qt.Orientation.Horizontal:
            return self.headers[section]
        return None

    def flags(self, index: QModelIndex) -> Qt.ItemFlag:  # type: ignore[override]
        if not index.isValid():
            return Qt.ItemFlag.NoItemFlags
        flags = Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable
        if index.column() == 0:
            flags |= Qt.ItemFlag.ItemIsUserCheckable
        return flags

    def _location(self, bp: Breakpoint) -> str:
        if bp.address is None:
            return "any"
        instr = self.program_provider().instruction_at(bp.address)
        if instr is not None:
            return f"0x{bp.address:04X}  line {instr.line_no}: {instr.text.strip()}"
        if not self.manager.address_has_instruction(bp.address):
            return f"0x{bp.address:04X}  (no instruction)"
        return f"0x{bp.address:04X}"

    def _condition(self, bp: Breakpoint) -> str:
        if bp.type == BreakpointType.REGISTER_CONDITION:
            return f"{bp.name} == 0x{bp.value:X}"
        if bp.type == BreakpointType.FLAG_CONDITION:
            return f"{bp.name} == {bp.value}"
        return "once" if bp.type == BreakpointType.TEMPORARY_ADDRESS else ""

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        bp = self._rows[index.row()]
        column = index.column()
        dangling = bp.type in ADDRESS_TYPES and not self.manager.address_has_instruction(bp.address)

        if role == Qt.ItemDataRole.CheckStateRole and column == 0:
            return Qt.CheckState.Checked if bp.enabled else Qt.CheckState.Unchecked
        if role == Qt.ItemDataRole.DisplayRole:
            return {
                1: bp.type.value,
                2: self._location(bp),
                3: self._condition(bp),
                4: str(bp.hit_count),
                REMOVE_COLUMN: "✕",
            }.get(column)
        if role == Qt.ItemDataRole.ForegroundRole:
            if not bp.enabled:
                return QColor("#6272a4")
            if dangling:
                return QColor("#ff5555")
        if role == Qt.ItemDataRole.ToolTipRole:
            if column == REMOVE_COLUMN:
                return "Remove breakpoint"
            if dangling:
                return "Address is outside the assembled program."
        return None

    def setData(self, index: QModelIndex, value, role: int = Qt.ItemDataRole.EditRole) -> bool:  # type: ignore[override]
        if not index.isValid() or index.column() != 0 or role != Qt.ItemDataRole.CheckStateRole:
            return False
        checked = value in (Qt.CheckState.Checked, Qt.CheckState.Checked.value)
        self.manager.set_enabled(self._rows[index.row()].id, checked)
        return True

    def breakpoint_at(self, row: int) -> Optional[Breakpoint]:
        if 0 <= row < len(self._rows):
            return self._rows[row]
        return None


class AddBreakpointDialog(QDialog):
    """Collects an address, register or flag breakpoint and adds it on OK.

    Input is validated by ``BreakpointManager.add_request``; on error the
    dialog stays open with the message shown.
    """

    def __init__(self, manager: BreakpointManager, program: Program, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.manager = manager
        self.program = program
        self.added_id: Optional[int] = None
        self.setWindowTitle("Add Breakpoint")

        layout = QFormLayout(self)
        self.kind_combo = QComboBox()
        self.kind_combo.addItems(list(REQUEST_KINDS))
        self.kind_combo.currentTextChanged.connect(self._on_kind_changed)
        layout.addRow("Kind", self.kind_combo)

        self.name_label = QLabel("Register")
        self.name_combo = QComboBox()
        self.name_combo.setEditable(True)
        layout.addRow(self.name_label, self.name_combo)

        self.value_label = QLabel("Value")
        self.value_edit = QLineEdit()
        layout.addRow(self.value_label, self.value_edit)

        self.temporary_check = QCheckBox("Remove after first hit")
        layout.addRow("", self.temporary_check)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        buttons.accepted.connect(self._submit)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

        self._on_kind_changed(self.kind_combo.currentText())

    def _on_kind_changed(self, kind: str) -> None:
        address = kind == "Address"
        self.name_label.setVisible(not address)
        self.name_combo.setVisible(not address)
        self.temporary_check.setVisible(address)
        self.name_combo.clear()
        if address:
            self.value_label.setText("Label or address")
            self.value_edit.setPlaceholderText(", ".join(sorted(self.program.labels)[:4]) or "0x10")
        elif kind == "Register":
            self.name_combo.addItems(list(REGISTER_ORDER) + ["XZR"])
            self.value_label.setText("Equals")
            self.value_edit.setPlaceholderText("#0x10, 16 or #-1")
        else:
            self.name_combo.addItems(list(FLAG_ORDER))
            self.value_label.setText("Equals")
            self.value_edit.setPlaceholderText("0 or 1")

    def _submit(self) -> None:
        try:
            self.added_id = self.manager.add_request(
                self.kind_combo.currentText(),
                self.name_combo.currentText(),
                self.value_edit.text(),
                program=self.program,
                temporary=self.temporary_check.isChecked(),
            )
        except ValueError as exc:
            QMessageBox.warning(self, "Invalid Breakpoint", str(exc))
            return
        self.accept()
