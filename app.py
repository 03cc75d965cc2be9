import tkinter as tk
from tkinter import ttk

from logic.config import Settings
from logic.dashboard import Dashboard
from logic.logger import setup_logging
from ui import theme
from ui.intake_frame import IntakeFrame
from ui.records_frame import RecordsFrame


class App(tk.Tk):
    def __init__(self, dashboard: Dashboard):
        super().__init__()
        self.title("KeratoScan AI - Dashboard")
        self.geometry("1280x760")
        self.configure(bg=theme.BG)
        theme.apply_styles(self)
        self.dashboard = dashboard

        # Navigation
        nav = ttk.Frame(self, style="Toolbar.TFrame", padding=(12, 8))
        nav.pack(fill="x")
        ttk.Label(nav, text="KeratoScan AI", style="H1.TLabel").pack(side="left", padx=(0, 16))
        ttk.Button(nav, text="Patient Records", style="Ghost.TButton",
                   command=lambda: self.show_frame("RecordsFrame")).pack(side="left")
        ttk.Button(nav, text="Scan Intake", style="Ghost.TButton",
                   command=lambda: self.show_frame("IntakeFrame")).pack(side="left")

        # Main container that hosts all pages
        container = tk.Frame(self, bg=theme.BG)
        container.pack(fill="both", expand=True)
        container.grid_rowconfigure(0, weight=1)
        container.grid_columnconfigure(0, weight=1)

        self.frames = {}
        for F in (RecordsFrame, IntakeFrame):
            frame = F(parent=container, controller=self)
            self.frames[F.__name__] = frame
            frame.grid(row=0, column=0, sticky="nsew")

        self.protocol("WM_DELETE_WINDOW", self.on_close)
        self.show_frame("RecordsFrame")

    def show_frame(self, name: str):
        frame = self.frames[name]
        frame.tkraise()
        if hasattr(frame, "on_show"):
            frame.on_show()

    def on_close(self):
        self.dashboard.close()
        self.destroy()


def main():
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    app = App(Dashboard(settings))
    app.mainloop()


if __name__ == "__main__":
    main()
