import tkinter as tk
from tkinter import ttk

from model.models import Gender

GENDERS = [g.value for g in Gender]
LABELS = {
    "first_name": "First Name",
    "last_name": "Last Name",
    "age": "Age",
    "gender": "Gender",
    "id_number": "ID Number",
}


class PatientForm(ttk.Frame):
    """Patient details asked for after a successful first-time classification."""
    def __init__(self, parent, on_submit):
        super().__init__(parent, style="Card.TFrame", padding=12)
        self.on_submit = on_submit

        ttk.Label(self, text="Patient Information", style="CardTitle.TLabel").grid(
            row=0, column=0, columnspan=2, sticky="w", pady=(0, 8))
        self.grid_columnconfigure(1, weight=1)

        self.vars = {name: tk.StringVar() for name in ("first_name", "last_name", "age", "id_number")}
        row = 1
        for name in ("first_name", "last_name", "age"):
            ttk.Label(self, text=LABELS[name], style="Field.TLabel").grid(row=row, column=0, sticky="w", pady=4)
            ttk.Entry(self, textvariable=self.vars[name]).grid(row=row, column=1, sticky="ew", pady=4)
            row += 1

        ttk.Label(self, text=LABELS["gender"], style="Field.TLabel").grid(row=row, column=0, sticky="w", pady=4)
        self.gender_var = tk.StringVar()
        ttk.Combobox(self, textvariable=self.gender_var, values=GENDERS,
                     state="readonly").grid(row=row, column=1, sticky="ew", pady=4)
        row += 1

        ttk.Label(self, text=LABELS["id_number"], style="Field.TLabel").grid(row=row, column=0, sticky="w", pady=4)
        ttk.Entry(self, textvariable=self.vars["id_number"]).grid(row=row, column=1, sticky="ew", pady=4)
        row += 1

        ttk.Label(self, text="Clinical Report", style="Field.TLabel").grid(row=row, column=0, sticky="nw", pady=4)
        self.report_text = tk.Text(self, height=4, wrap="word", bg="#111827", fg="#e5e7eb",
                                   insertbackground="#e5e7eb", relief="flat")
        self.report_text.grid(row=row, column=1, sticky="ew", pady=4)
        row += 1

        ttk.Label(self, text="Analysis Result", style="Field.TLabel").grid(row=row, column=0, sticky="nw", pady=4)
        self.result_label = ttk.Label(self, text="", style="Card.TLabel", justify="left")
        self.result_label.grid(row=row, column=1, sticky="w", pady=4)
        row += 1

        ttk.Button(self, text="Submit Patient Data", style="Accent.TButton",
                   command=self._submit).grid(row=row, column=1, sticky="e", pady=(10, 0))
        self.bind_all("<Control-s>", lambda e: self._submit() if self.winfo_ismapped() else None)

    def set_result(self, text):
        self.result_label.config(text=text or "")

    def values(self):
        form = {name: var.get() for name, var in self.vars.items()}
        form["gender"] = self.gender_var.get()
        form["report"] = self.report_text.get("1.0", "end").strip()
        return form

    def clear(self):
        for var in self.vars.values():
            var.set("")
        self.gender_var.set("")
        self.report_text.delete("1.0", "end")
        self.result_label.config(text="")

    def _submit(self):
        self.on_submit(self.values())
