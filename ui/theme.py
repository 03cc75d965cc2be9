from tkinter import ttk

PRIMARY  = "#0ea5e9"  # cyan-500
BG       = "#0b1220"  # slate-950
CARD_BG  = "#0f172a"  # slate-900
FG       = "#e5e7eb"  # gray-200
MUTED    = "#94a3b8"  # gray-400
FIELD_BG = "#111827"  # gray-900
BORDER   = "#1f2937"  # slate-800
DANGER   = "#ef4444"  # red-500
SUCCESS  = "#22c55e"  # green-500
ROW_EVEN = "#0b1220"
ROW_ODD  = "#0e1627"


def apply_styles(widget):
    """Configure the shared ttk styles once per root."""
    style = ttk.Style(widget)
    try:
        style.theme_use("clam")
    except Exception:
        pass

    style.configure("App.TFrame", background=BG)
    style.configure("Toolbar.TFrame", background=BG)
    style.configure("Card.TFrame", background=CARD_BG)
    style.configure("H1.TLabel", background=BG, foreground=FG, font=("Segoe UI", 18, "bold"))
    style.configure("Muted.TLabel", background=BG, foreground=MUTED)
    style.configure("Card.TLabel", background=CARD_BG, foreground=FG)
    style.configure("CardMuted.TLabel", background=CARD_BG, foreground=MUTED)
    style.configure("CardTitle.TLabel", background=CARD_BG, foreground=FG, font=("Segoe UI", 12, "bold"))
    style.configure("Error.TLabel", background=CARD_BG, foreground=DANGER)
    style.configure("Positive.TLabel", background=CARD_BG, foreground=DANGER, font=("Consolas", 11, "bold"))
    style.configure("Negative.TLabel", background=CARD_BG, foreground=SUCCESS, font=("Consolas", 11, "bold"))
    style.configure("Field.TLabel", background=CARD_BG, foreground=FG, font=("Segoe UI", 10, "bold"))

    style.configure("TEntry",
                    fieldbackground=FIELD_BG, foreground=FG,
                    insertcolor=FG, bordercolor=BORDER, padding=8)
    style.map("TEntry",
              fieldbackground=[("disabled", "#1f2937"), ("!disabled", FIELD_BG)],
              bordercolor=[("focus", PRIMARY), ("!focus", BORDER)])

    style.configure("Accent.TButton", background=PRIMARY, foreground="#0b1220",
                    padding=(14, 8), borderwidth=0)
    style.map("Accent.TButton",
              background=[("disabled", BORDER), ("active", "#22d3ee"), ("!active", PRIMARY)],
              foreground=[("disabled", MUTED), ("!disabled", "#0b1220")])

    style.configure("Ghost.TButton", background=BG, foreground=MUTED,
                    padding=(12, 8), borderwidth=0)
    style.map("Ghost.TButton",
              background=[("active", "#111827")],
              foreground=[("active", FG), ("!active", MUTED)])

    style.configure("Treeview",
                    background=CARD_BG, fieldbackground=CARD_BG, foreground=FG,
                    bordercolor=BORDER, rowheight=28)
    style.configure("Treeview.Heading",
                    background=BG, foreground=FG, bordercolor=BORDER,
                    font=("Segoe UI", 10, "bold"))
    return style
