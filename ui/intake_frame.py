import tkinter as tk
from tkinter import ttk, messagebox

from logic.intake import IntakeState, PatientFormError
from logic.mongo_db import RecordStoreError
from ui import theme
from ui.patient_form import LABELS, PatientForm
from ui.scan_panel import ScanPanel

INSTRUCTIONS = (
    "1. Upload a clear, high-resolution image\n"
    "2. Supported formats: JPG, PNG\n"
    "3. Ensure proper lighting in the image\n"
    "4. Wait for the prediction results\n"
    "5. Fill in patient details when prompted"
)


class IntakeFrame(tk.Frame):
    """Topographer view: classify a new scan, then record the patient."""
    def __init__(self, parent, controller):
        super().__init__(parent, bg=theme.BG)
        self.controller = controller
        self.dashboard = controller.dashboard

        root = ttk.Frame(self, style="App.TFrame")
        root.pack(fill="both", expand=True)

        topbar = ttk.Frame(root, style="Toolbar.TFrame", padding=(16, 12))
        topbar.pack(fill="x")
        ttk.Label(topbar, text="Scan Intake", style="H1.TLabel").pack(side="left")

        content = ttk.Frame(root, style="App.TFrame")
        content.pack(fill="both", expand=True, padx=16, pady=12)

        left = ttk.Frame(content, style="Card.TFrame", padding=12)
        left.pack(side="left", fill="y")
        ttk.Label(left, text="Instructions", style="CardTitle.TLabel").pack(anchor="w")
        ttk.Label(left, text=INSTRUCTIONS, style="CardMuted.TLabel", justify="left").pack(anchor="w", pady=(6, 12))
        self.form = PatientForm(content, on_submit=self.submit)
        self.scan_panel = ScanPanel(left, self.dashboard.intake, title="Corneal Topography Scan",
                                    on_change=self._on_flow_change)
        self.scan_panel.pack(fill="x")

    def on_show(self):
        self._on_flow_change(self.dashboard.intake)

    def _on_flow_change(self, flow):
        if flow.state == IntakeState.AWAITING_PATIENT_DETAILS:
            self.form.set_result(flow.outcome_text)
            if not self.form.winfo_ismapped():
                self.form.pack(side="left", fill="both", expand=True, padx=(12, 0))
        else:
            self.form.pack_forget()

    def submit(self, form):
        try:
            record_id = self.dashboard.submit_intake(form)
        except PatientFormError as e:
            names = ", ".join(LABELS.get(f, f) for f in e.fields)
            messagebox.showerror("Validation", f"Please complete: {names}")
            return
        except RecordStoreError as e:
            messagebox.showerror("Save failed", str(e))
            return
        self.form.clear()
        messagebox.showinfo("Saved", f"Patient record saved ({record_id}).")
