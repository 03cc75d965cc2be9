import threading
import tkinter as tk
from tkinter import ttk, filedialog
from PIL import ImageTk

from logic.intake import IntakeState, ScanIntakeFlow
from ui import theme


class ScanPanel(ttk.Frame):
    """
    Upload -> preview -> process -> result widget bound to one ScanIntakeFlow.
    Shared by the intake view and the follow-up scan on an inspected record.
    """
    def __init__(self, parent, flow: ScanIntakeFlow, title="Scan Analysis", on_change=None):
        super().__init__(parent, style="Card.TFrame", padding=10)
        self.flow = flow
        self.on_change = on_change
        self._photo = None        # keep a reference or Tk drops the image
        self._shown_preview = None

        ttk.Label(self, text=title, style="CardTitle.TLabel").pack(anchor="w")

        self.preview = tk.Label(self, text="Click to choose a scan image\nSupported formats: JPG, PNG, JPEG",
                                bg=theme.FIELD_BG, fg=theme.MUTED, width=48, height=12, cursor="hand2")
        self.preview.pack(fill="x", pady=(6, 6))
        self.preview.bind("<Button-1>", lambda e: self.choose_file())

        self.error_label = ttk.Label(self, text="", style="Error.TLabel", wraplength=360)
        self.error_label.pack(anchor="w")

        self.result_label = ttk.Label(self, text="", style="Negative.TLabel", justify="left")
        self.result_label.pack(anchor="w", pady=(4, 4))

        actions = ttk.Frame(self, style="Card.TFrame"); actions.pack(fill="x", pady=(6, 0))
        self.btn_reset = ttk.Button(actions, text="Try Again", style="Ghost.TButton", command=self.flow.reset)
        self.btn_process = ttk.Button(actions, text="Process Image", style="Accent.TButton", command=self.process)
        self.btn_reset.pack(side="left")
        self.btn_process.pack(side="right")

        self._unsubscribe = self.flow.subscribe(lambda _flow: self.refresh())
        self.refresh()

    # ---------- actions ----------
    def choose_file(self):
        if self.flow.state == IntakeState.CLASSIFYING:
            return
        path = filedialog.askopenfilename(
            parent=self, title="Select scan image",
            filetypes=[("Images", "*.png *.jpg *.jpeg"), ("All files", "*.*")]
        )
        if path:
            self.flow.select_file(path)

    def process(self):
        path = self.flow.begin_classify()
        if path is None:
            return  # nothing selected or a call is already in flight

        def work():
            # state changes go back to the Tk thread
            self.after(0, self.flow.fetch_outcome(path))

        threading.Thread(target=work, daemon=True).start()

    # ---------- rendering ----------
    def refresh(self):
        flow = self.flow
        self._show_preview(flow.preview)

        self.error_label.config(text=flow.error or "")
        text = flow.outcome_text or ""
        style = "Positive.TLabel" if "Keratoconus" in text else "Negative.TLabel"
        self.result_label.config(text=text, style=style)

        if flow.state == IntakeState.CLASSIFYING:
            self.btn_process.config(text="Processing...", state="disabled")
        else:
            self.btn_process.config(text="Process Image",
                                    state="normal" if flow.state == IntakeState.FILE_SELECTED else "disabled")
        self.btn_reset.config(state="disabled" if flow.state == IntakeState.IDLE else "normal")

        if self.on_change:
            self.on_change(flow)

    def _show_preview(self, handle):
        if handle == self._shown_preview:
            return
        self._shown_preview = handle
        img = self.flow.previews.get(handle) if handle else None
        if img is None:
            self._photo = None
            self.preview.config(image="", text="Click to choose a scan image\nSupported formats: JPG, PNG, JPEG",
                                width=48, height=12)
            return
        self._photo = ImageTk.PhotoImage(img)
        self.preview.config(image=self._photo, text="", width=img.width, height=img.height)

    def destroy(self):
        self._unsubscribe()
        super().destroy()
