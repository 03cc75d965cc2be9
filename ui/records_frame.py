import threading
import tkinter as tk
from tkinter import ttk, messagebox, filedialog
from PIL import ImageTk

from logic.intake import IntakeState
from logic.mongo_db import RecordStoreError
from logic.report import format_date_time
from ui import theme
from ui.scan_panel import ScanPanel


class RecordsFrame(tk.Frame):
    """Reviewing view: searchable, date-filtered, paginated patient list plus a details panel."""
    def __init__(self, parent, controller):
        super().__init__(parent, bg=theme.BG)
        self.controller = controller
        self.dashboard = controller.dashboard
        self.browser = self.dashboard.browser
        self._photo = None
        self._shown_image = None

        root = ttk.Frame(self, style="App.TFrame")
        root.pack(fill="both", expand=True)

        # Top bar
        topbar = ttk.Frame(root, style="Toolbar.TFrame", padding=(16, 12))
        topbar.pack(fill="x")
        ttk.Label(topbar, text="Patient Records", style="H1.TLabel").pack(side="left")
        ttk.Button(topbar, text="Reload", style="Ghost.TButton", command=self.reload).pack(side="right")

        # Controls: search + date
        controls = ttk.Frame(root, style="Toolbar.TFrame", padding=(16, 0))
        controls.pack(fill="x")
        ttk.Label(controls, text="Search", style="Muted.TLabel").pack(side="left", padx=(0, 8))
        self.search_var = tk.StringVar()
        self.search_entry = ttk.Entry(controls, textvariable=self.search_var, width=28)
        self.search_entry.pack(side="left", fill="x", expand=True)
        ttk.Label(controls, text="Date (YYYY-MM-DD)", style="Muted.TLabel").pack(side="left", padx=(16, 8))
        self.date_var = tk.StringVar()
        ttk.Entry(controls, textvariable=self.date_var, width=14).pack(side="left")
        ttk.Button(controls, text="Clear", style="Ghost.TButton",
                   command=lambda: (self.search_var.set(""), self.date_var.set(""))).pack(side="left", padx=(8, 0))

        content = ttk.Frame(root, style="App.TFrame")
        content.pack(fill="both", expand=True, padx=16, pady=12)

        # Table card
        card = ttk.Frame(content, style="Card.TFrame", padding=12)
        card.pack(side="left", fill="both", expand=True)

        columns = ("name", "id", "age", "gender", "date")
        self.tree = ttk.Treeview(card, columns=columns, show="headings", selectmode="browse")
        headers = {"name": "Name", "id": "ID Number", "age": "Age", "gender": "Gender", "date": "Date & Time"}
        widths = {"name": 220, "id": 130, "age": 60, "gender": 90, "date": 180}
        for col in columns:
            self.tree.heading(col, text=headers[col])
            self.tree.column(col, stretch=True, width=widths[col])
        self.tree.tag_configure("evenrow", background=theme.ROW_EVEN)
        self.tree.tag_configure("oddrow", background=theme.ROW_ODD)
        self.tree.pack(fill="both", expand=True)

        self.message = ttk.Label(card, text="", style="CardMuted.TLabel")
        self.message.pack(anchor="w", pady=(6, 0))

        pager = ttk.Frame(card, style="Card.TFrame")
        pager.pack(fill="x", pady=(6, 0))
        self.btn_prev = ttk.Button(pager, text="←", style="Ghost.TButton",
                                   command=lambda: self.dashboard.go_to_page(self.browser.page - 1))
        self.page_label = ttk.Label(pager, text="Page 1 of 1", style="Card.TLabel")
        self.btn_next = ttk.Button(pager, text="→", style="Ghost.TButton",
                                   command=lambda: self.dashboard.go_to_page(self.browser.page + 1))
        self.btn_prev.pack(side="left")
        self.page_label.pack(side="left", padx=12)
        self.btn_next.pack(side="left")

        # Details card (shown while a record is inspected)
        self.details = ttk.Frame(content, style="Card.TFrame", padding=12)
        head = ttk.Frame(self.details, style="Card.TFrame"); head.pack(fill="x")
        ttk.Label(head, text="Patient Details", style="CardTitle.TLabel").pack(side="left")
        ttk.Button(head, text="✕", style="Ghost.TButton", command=self.dashboard.close_inspection).pack(side="right")
        ttk.Button(head, text="Download Report", style="Accent.TButton",
                   command=self.download_report).pack(side="right", padx=6)
        self.info_label = ttk.Label(self.details, text="", style="Card.TLabel", justify="left")
        self.info_label.pack(anchor="w", pady=(8, 8))
        self.image_label = tk.Label(self.details, bg=theme.CARD_BG)
        self.image_label.pack(anchor="w")
        ttk.Label(self.details, text="AI Analysis Results", style="CardTitle.TLabel").pack(anchor="w", pady=(8, 0))
        self.prediction_label = ttk.Label(self.details, text="", style="Negative.TLabel", justify="left")
        self.prediction_label.pack(anchor="w")

        self.btn_save = ttk.Button(self.details, text="Save New Result to Record", style="Ghost.TButton",
                                   command=self.save_follow_up)
        self.scan_panel = ScanPanel(self.details, self.dashboard.follow_up, on_change=self._on_follow_up)
        self.scan_panel.pack(fill="x", pady=(10, 0))

        # bindings
        self.search_var.trace_add("write", lambda *_: self._apply_query())
        self.date_var.trace_add("write", lambda *_: self._apply_query())
        self.tree.bind("<Double-1>", lambda e: self.view_selected())
        self.tree.bind("<Return>", lambda e: self.view_selected())
        self.browser.subscribe(lambda _b: self.refresh())

    # ---------- lifecycle ----------
    def on_show(self):
        self.reload()
        self.search_entry.focus_set()

    def reload(self):
        self.message.config(text="Loading patient records...")
        self.update_idletasks()
        result = self.dashboard.refresh()
        if not result.available:
            messagebox.showerror("Records unavailable", f"Could not load patient records:\n{result.error}")

    # ---------- helpers ----------
    def _apply_query(self):
        d = self.date_var.get().strip()
        if d and len(d) != 10:
            return  # still typing
        try:
            self.browser.set_query(text=self.search_var.get(), date=d or None)
        except ValueError:
            self.message.config(text="Date must be YYYY-MM-DD.")

    def refresh(self):
        for row in self.tree.get_children():
            self.tree.delete(row)

        page = self.browser.visible()
        tz = self.browser.tz
        for i, r in enumerate(page.items):
            tag = "evenrow" if i % 2 == 0 else "oddrow"
            self.tree.insert(
                "", "end", iid=r.record_id,
                values=(r.full_name, r.id_number, "" if r.age is None else r.age,
                        r.gender.capitalize(), format_date_time(r.date_time, tz)),
                tags=(tag,)
            )

        if not self.browser.available:
            self.message.config(text="Patient records are unavailable.")
        elif page.total == 0:
            self.message.config(text="No patients found matching your search criteria.")
        else:
            self.message.config(text=f"{page.total} patient(s)")

        self.page_label.config(text=f"Page {page.number} of {page.count}")
        self.btn_prev.config(state="normal" if page.has_previous else "disabled")
        self.btn_next.config(state="normal" if page.has_next else "disabled")
        self._show_details()

    def _show_details(self):
        record = self.browser.selected
        if record is None:
            self.details.pack_forget()
            self._shown_image = None
            return
        self.details.pack(side="left", fill="y", padx=(12, 0))
        age = "N/A" if record.age is None else record.age
        self.info_label.config(text=(
            f"Name: {record.full_name}\n"
            f"ID Number: {record.id_number}\n"
            f"Age: {age}\n"
            f"Gender: {record.gender.capitalize()}\n"
            f"Date & Time: {format_date_time(record.date_time, self.browser.tz)}"
        ))
        style = "Positive.TLabel" if "Keratoconus" in record.prediction else "Negative.TLabel"
        self.prediction_label.config(text=record.prediction or "N/A", style=style)
        self._show_scan(record)

    def _show_scan(self, record):
        ref = record.image_url
        if ref == self._shown_image:
            return
        self._shown_image = ref
        self._photo = None
        self.image_label.config(image="", text="")
        if not ref:
            return
        self.image_label.config(text="Loading scan...", fg=theme.MUTED)

        def work():
            try:
                img = self.dashboard.scan_thumbnail(ref)
            except Exception as e:
                msg = str(e)
                self.after(0, lambda: self._apply_scan(ref, None, msg))
                return
            self.after(0, lambda: self._apply_scan(ref, img, None))

        threading.Thread(target=work, daemon=True).start()

    def _apply_scan(self, ref, img, error):
        if ref != self._shown_image:
            return  # another record is inspected now
        if img is None:
            self.image_label.config(text=f"Image unavailable: {error}", fg=theme.MUTED)
            return
        self._photo = ImageTk.PhotoImage(img)
        self.image_label.config(image=self._photo, text="")

    def _on_follow_up(self, flow):
        if flow.state == IntakeState.RESULTED:
            self.btn_save.pack(fill="x", pady=(6, 0))
        else:
            self.btn_save.pack_forget()

    # ---------- actions ----------
    def view_selected(self):
        sel = self.tree.selection()
        if not sel:
            messagebox.showwarning("Warning", "Select a patient first")
            return
        self.dashboard.inspect(sel[0])

    def save_follow_up(self):
        if not messagebox.askyesno("Save result",
                                   "Replace the stored analysis result with the new one?"):
            return
        try:
            self.dashboard.save_follow_up()
        except RecordStoreError as e:
            messagebox.showerror("Save failed", str(e))

    def download_report(self):
        directory = filedialog.askdirectory(parent=self, title="Save report to",
                                            initialdir=self.dashboard.settings.report_dir)
        if not directory:
            return
        try:
            path = self.dashboard.download_report(directory)
        except OSError as e:
            messagebox.showerror("Report", f"Could not write report:\n{e}")
            return
        messagebox.showinfo("Report", f"Report saved to:\n{path}")
