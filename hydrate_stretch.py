#!/usr/bin/env python3
"""
Hydrate & Stretch — Water and Movement Reminder
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Cross-platform reminder app that runs in your system tray.
Reminds you to drink water and to stretch at your own intervals.

Features:
  - Independent hydration and stretch timers with custom messages
  - Optional weekdays-only and work-hours-only gating (overnight shifts too)
  - Native tray notifications, with an on-screen popup fallback
  - Launch at login, close-to-tray, single running instance
  - All settings editable live and persist between sessions

Usage:
    python hydrate_stretch.py
    python hydrate_stretch.py --test     (1-minute intervals for testing)
    python hydrate_stretch.py --hidden   (start in the tray only)
    pythonw hydrate_stretch.py           (Windows — no console)
"""
from __future__ import annotations
import sys, platform
import argparse

# ─── tkinter check ────────────────────────────────────────────
try:
    import tkinter as tk
except ImportError:
    _s = platform.system()
    print("Error: tkinter is required.")
    if _s == "Darwin":
        print("  brew install python-tk@3.12  (or use python.org installer)")
    elif _s == "Linux":
        print("  sudo apt install python3-tk")
    sys.exit(1)

# ─── Imports ──────────────────────────────────────────────────
import datetime, logging, socket, threading
from typing import Any, Callable, Optional

import autostart
from make_icon import create_drop_icon
from notify import ChainNotificationSink, NotificationError, NotificationSink, TrayNotificationSink
from prefs_store import fire_policy_from_config, load_config, preferences_from_config, save_config
from reminders import MAX_INTERVAL_MINUTES, ReminderKind, Scheduler, format_hhmm, parse_hhmm

try:
    import pystray
    HAS_TRAY = True
except ImportError:
    HAS_TRAY = False

logger = logging.getLogger("hydrate_stretch")

# ─── Platform ────────────────────────────────────────────────
IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"
FONT = "Helvetica Neue" if IS_MAC else "Segoe UI" if IS_WIN else "DejaVu Sans"

# ─── Named Constants ─────────────────────────────────────────
POPUP_DISMISS_MS = 8000            # Auto-dismiss fallback popup after 8 seconds
COUNTDOWN_REFRESH_MS = 1000        # Settings window countdown refresh
INSTANCE_PORT = 47613              # Localhost port used as the single-instance lock

# ─── Colours ──────────────────────────────────────────────────
C_BG       = "#111827";  C_CARD     = "#1e293b";  C_CARD_IN  = "#253349"
C_ACCENT2  = "#0ea5e9";  C_BTN_PRI  = "#1d4ed8";  C_BTN_SEC  = "#334155"
C_TEXT     = "#f1f5f9";  C_TEXT_DIM = "#94a3b8";  C_TEXT_MUT = "#64748b"
C_OK       = "#22c55e";  C_ERR      = "#ef4444"


def fmt_mm_ss(td: datetime.timedelta) -> str:
    s = max(0, int(td.total_seconds()))
    return f"{s // 60:02d}:{s % 60:02d}"


# ─── Popup Notifications ─────────────────────────────────────
class PopupNotificationSink(NotificationSink):
    """Bottom-right on-screen popup, used when native toasts are unavailable."""

    def __init__(self, root: tk.Tk):
        self.root = root
        self._win: Optional[tk.Toplevel] = None

    def show(self, title: str, body: str) -> None:
        if self._win:
            try:
                self._win.destroy()
            except tk.TclError:
                pass
        try:
            win = tk.Toplevel(self.root)
            win.overrideredirect(True)
            win.attributes("-topmost", True)
            try:
                win.attributes("-alpha", 0.95)
            except tk.TclError:
                pass
            win.configure(bg=C_CARD)

            sw, sh = win.winfo_screenwidth(), win.winfo_screenheight()
            w, h = 380, 110
            win.geometry(f"{w}x{h}+{sw-w-20}+{sh-h-60}")

            f = tk.Frame(win, bg=C_CARD, padx=18, pady=12)
            f.pack(fill="both", expand=True)
            tk.Label(f, text=title, font=(FONT, 14, "bold"),
                     fg=C_ACCENT2, bg=C_CARD).pack(anchor="w")
            tk.Label(f, text=body, font=(FONT, 11), fg=C_TEXT_DIM, bg=C_CARD,
                     wraplength=w - 40, justify="left").pack(anchor="w", pady=(4, 0))
        except tk.TclError as e:
            raise NotificationError(f"popup failed: {e}") from e

        self._win = win

        def dismiss(e=None):
            try:
                win.destroy()
            except tk.TclError:
                pass
            if self._win is win:
                self._win = None
        win.after(POPUP_DISMISS_MS, dismiss)
        win.bind("<Button-1>", dismiss)
        for child in f.winfo_children():
            child.bind("<Button-1>", dismiss)


# ─── Single Instance ─────────────────────────────────────────
class SingleInstance:
    """Localhost socket lock; a second launch asks the first to show itself."""

    def __init__(self, port: int = INSTANCE_PORT):
        self.port = port
        self._sock: Optional[socket.socket] = None

    def acquire(self) -> bool:
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            s.bind(("127.0.0.1", self.port))
        except OSError:
            s.close()
            return False
        s.listen(1)
        self._sock = s
        return True

    def notify_running(self) -> None:
        try:
            with socket.create_connection(("127.0.0.1", self.port), timeout=2) as c:
                c.sendall(b"show")
        except OSError as e:
            logger.warning("Could not reach running instance: %s", e)

    def listen(self, on_show: Callable[[], None]) -> None:
        def serve():
            while self._sock is not None:
                try:
                    conn, _ = self._sock.accept()
                except OSError:
                    return
                with conn:
                    try:
                        if conn.recv(16) == b"show":
                            on_show()
                    except OSError:
                        pass
        threading.Thread(target=serve, daemon=True).start()

    def release(self) -> None:
        if self._sock is not None:
            s, self._sock = self._sock, None
            s.close()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class HydrateStretchApp:

    def __init__(self, test_mode: bool = False, hidden: bool = False,
                 instance: Optional[SingleInstance] = None):
        self.root = tk.Tk()
        self.root.withdraw()

        self.test_mode = test_mode
        self.config = load_config(test_mode=test_mode)
        self.instance = instance
        self.tray = None
        self._settings_win = None
        self._countdown_id = None
        self._launch_at_login = autostart.get_launch_at_login()

        self.popup_sink = PopupNotificationSink(self.root)
        sink = ChainNotificationSink(TrayNotificationSink(lambda: self.tray), self.popup_sink)
        self.scheduler = Scheduler(sink, preferences_from_config(self.config),
                                   test_fire_policy=fire_policy_from_config(self.config))

        if HAS_TRAY:
            threading.Thread(target=self._run_tray, daemon=True).start()
        else:
            self.root.bind_all("<Control-q>", lambda e: self._quit())
            self.root.bind_all("<Control-Q>", lambda e: self._quit())
        if self.instance is not None:
            self.instance.listen(lambda: self.root.after(0, self._show_settings))

        self._print_schedule()
        self.scheduler.start(self.root.after, self.root.after_cancel)
        if not hidden and (self.config.get("open_settings_on_start", True) or not HAS_TRAY):
            self.root.after(200, self._show_settings)
        self.root.mainloop()

    # ━━━ Settings Window ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _show_settings(self) -> None:
        if self._settings_win:
            try:
                self._settings_win.deiconify()
                self._settings_win.lift()
                self._settings_win.focus_force()
                return
            except tk.TclError:
                self._settings_win = None

        prefs = self.scheduler.prefs
        win = tk.Toplevel(self.root)
        win.title("Hydrate & Stretch")
        win.configure(bg=C_BG)
        win.resizable(False, False)
        win.protocol("WM_DELETE_WINDOW", self._close_settings)
        self._settings_win = win

        tk.Label(win, text="Hydrate & Stretch", font=(FONT, 16, "bold"),
                 fg=C_ACCENT2, bg=C_BG).pack(anchor="w", padx=16, pady=(14, 0))
        tray = "menu bar" if IS_MAC else "system tray"
        tk.Label(win, text=f"Close this window to keep running in the {tray}.",
                 font=(FONT, 9), fg=C_TEXT_MUT, bg=C_BG).pack(anchor="w", padx=16, pady=(0, 8))

        # ── Reminder cards ──
        self._kind_widgets: dict[ReminderKind, dict[str, Any]] = {}
        cards = tk.Frame(win, bg=C_BG)
        cards.pack(fill="x", padx=12)
        for col, kind in enumerate(ReminderKind):
            s = prefs.settings(kind)
            card = tk.Frame(cards, bg=C_CARD, padx=12, pady=10)
            card.grid(row=0, column=col, padx=4, pady=4, sticky="nsew")
            tk.Label(card, text=kind.label, font=(FONT, 12, "bold"),
                     fg=C_TEXT, bg=C_CARD).grid(row=0, column=0, columnspan=2, sticky="w")

            on = tk.BooleanVar(value=s.enabled)
            tk.Checkbutton(card, text="Enable", variable=on, font=(FONT, 10),
                           fg=C_TEXT, bg=C_CARD, selectcolor=C_CARD_IN,
                           activebackground=C_CARD).grid(row=1, column=0, columnspan=2, sticky="w")

            tk.Label(card, text="Interval (min)", font=(FONT, 10),
                     fg=C_TEXT_DIM, bg=C_CARD).grid(row=2, column=0, sticky="w")
            spin = tk.Spinbox(card, from_=1, to=MAX_INTERVAL_MINUTES, width=6, font=(FONT, 10))
            spin.delete(0, "end");  spin.insert(0, str(s.interval_minutes))
            spin.grid(row=2, column=1, sticky="w", pady=2)

            tk.Label(card, text="Message", font=(FONT, 10),
                     fg=C_TEXT_DIM, bg=C_CARD).grid(row=3, column=0, sticky="w")
            msg = tk.Entry(card, width=30, font=(FONT, 10))
            msg.insert(0, s.message)
            msg.grid(row=3, column=1, sticky="w", pady=2)

            countdown = tk.StringVar(value="")
            tk.Label(card, textvariable=countdown, font=(FONT, 10, "bold"),
                     fg=C_ACCENT2, bg=C_CARD).grid(row=4, column=0, columnspan=2, sticky="w", pady=(6, 0))
            self._kind_widgets[kind] = {"on": on, "spin": spin, "msg": msg, "countdown": countdown}

        # ── Schedule rules ──
        rules = tk.Frame(win, bg=C_CARD, padx=12, pady=10)
        rules.pack(fill="x", padx=16, pady=(8, 0))
        self._weekdays_var = tk.BooleanVar(value=prefs.weekdays_only)
        self._workhours_var = tk.BooleanVar(value=prefs.work_hours_only)
        for row, (text, var) in enumerate([("Weekdays only", self._weekdays_var),
                                           ("Only during work hours", self._workhours_var)]):
            tk.Checkbutton(rules, text=text, variable=var, font=(FONT, 10), fg=C_TEXT,
                           bg=C_CARD, selectcolor=C_CARD_IN,
                           activebackground=C_CARD).grid(row=row, column=0, columnspan=4, sticky="w")
        tk.Label(rules, text="Start", font=(FONT, 10), fg=C_TEXT_DIM,
                 bg=C_CARD).grid(row=2, column=0, sticky="w")
        self._ws_entry = tk.Entry(rules, width=6, font=(FONT, 10))
        self._ws_entry.insert(0, format_hhmm(prefs.work_start))
        self._ws_entry.grid(row=2, column=1, sticky="w", padx=(4, 12))
        tk.Label(rules, text="End", font=(FONT, 10), fg=C_TEXT_DIM,
                 bg=C_CARD).grid(row=2, column=2, sticky="w")
        self._we_entry = tk.Entry(rules, width=6, font=(FONT, 10))
        self._we_entry.insert(0, format_hhmm(prefs.work_end))
        self._we_entry.grid(row=2, column=3, sticky="w", padx=4)

        # ── Controls ──
        ctl = tk.Frame(win, bg=C_BG)
        ctl.pack(fill="x", padx=16, pady=10)
        self._btn(ctl, "Save", C_BTN_PRI, self._apply_settings, bold=True).pack(side="left")
        self._btn(ctl, "Test hydration", C_BTN_SEC,
                  lambda: self._test(ReminderKind.HYDRATE)).pack(side="left", padx=(6, 0))
        self._btn(ctl, "Test stretch", C_BTN_SEC,
                  lambda: self._test(ReminderKind.STRETCH)).pack(side="left", padx=(6, 0))
        self._btn(ctl, "Reset timers", C_BTN_SEC, self._reset_timers).pack(side="left", padx=(6, 0))

        self._launch_var = tk.BooleanVar(value=self._launch_at_login)
        tk.Checkbutton(win, text="Launch at login (run in tray)", variable=self._launch_var,
                       command=lambda: self._set_launch_at_login(self._launch_var.get()),
                       font=(FONT, 10), fg=C_TEXT, bg=C_BG, selectcolor=C_CARD_IN,
                       activebackground=C_BG).pack(anchor="w", padx=16)

        self._save_fb = tk.StringVar(value="")
        self._save_fb_label = tk.Label(win, textvariable=self._save_fb, font=(FONT, 9),
                                       fg=C_OK, bg=C_BG)
        self._save_fb_label.pack(anchor="w", padx=16, pady=(4, 12))

        self._update_countdowns()

    def _btn(self, p: tk.Frame, text: str, bg: str, cmd: Callable, bold: bool = False) -> tk.Button:
        return tk.Button(p, text=text, font=(FONT, 10, "bold" if bold else "normal"),
                         bg=bg, fg=C_TEXT, activebackground=bg, activeforeground=C_TEXT,
                         relief="flat", padx=12, pady=4, cursor="hand2", command=cmd)

    def _feedback(self, text: str, ok: bool = True) -> None:
        self._save_fb.set(text)
        self._save_fb_label.configure(fg=C_OK if ok else C_ERR)

    def _update_countdowns(self) -> None:
        self._countdown_id = None
        if not self._settings_win:
            return
        try:
            if not self._settings_win.winfo_exists():
                self._settings_win = None
                return
        except tk.TclError:
            self._settings_win = None
            return

        allowed = self.scheduler.is_allowed_now()
        for kind, widgets in self._kind_widgets.items():
            if not self.scheduler.prefs.settings(kind).enabled:
                text = "Off"
            else:
                text = f"Next in: {fmt_mm_ss(self.scheduler.time_remaining(kind))}"
                if not allowed:
                    text += "  (waiting for schedule)"
            widgets["countdown"].set(text)
        self._countdown_id = self._settings_win.after(COUNTDOWN_REFRESH_MS, self._update_countdowns)

    def _apply_settings(self) -> None:
        partial: dict[str, Any] = {}
        try:
            for kind, widgets in self._kind_widgets.items():
                minutes = int(widgets["spin"].get())
                if not 1 <= minutes <= MAX_INTERVAL_MINUTES:
                    self._feedback(f"⚠ Intervals must be 1-{MAX_INTERVAL_MINUTES} min", ok=False);  return
                partial[f"{kind.value}_interval"] = minutes
                partial[f"{kind.value}_message"] = widgets["msg"].get().strip()
                partial[f"{kind.value}_enabled"] = bool(widgets["on"].get())
            ws = parse_hhmm(self._ws_entry.get())
            we = parse_hhmm(self._we_entry.get())
        except ValueError:
            self._feedback("⚠ Use whole minutes and HH:MM times", ok=False)
            return

        partial["weekdays_only"] = bool(self._weekdays_var.get())
        partial["work_hours_only"] = bool(self._workhours_var.get())
        partial["work_start"] = format_hhmm(ws)
        partial["work_end"] = format_hhmm(we)

        prefs = self.scheduler.update_preferences(partial)
        self.config.update(prefs.to_dict())
        save_config(self.config, test_mode=self.test_mode)
        self._update_tray_icon()
        self._feedback("✓ Saved")

    def _close_settings(self) -> None:
        if self._countdown_id is not None and self._settings_win:
            try:
                self._settings_win.after_cancel(self._countdown_id)
            except tk.TclError:
                pass
            self._countdown_id = None
        if not HAS_TRAY and self._settings_win:
            # Nothing else to reopen it from
            self._settings_win.iconify()
            return
        try:
            if self._settings_win:
                self._settings_win.destroy()
        except tk.TclError:
            pass
        self._settings_win = None

    # ━━━ Actions ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _test(self, kind: ReminderKind) -> None:
        self.scheduler.test_fire(kind)

    def _reset_timers(self) -> None:
        self.scheduler.reset_timers()
        if self._settings_win:
            self._feedback("✓ Timers reset")

    def _set_launch_at_login(self, enable: bool) -> None:
        ok = autostart.set_launch_at_login(enable)
        if ok:
            self._launch_at_login = enable
        if self._settings_win:
            self._launch_var.set(self._launch_at_login)
            if not ok:
                self._feedback("⚠ Could not change launch at login", ok=False)
        if self.tray is not None:
            self.tray.update_menu()

    # ━━━ Startup ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _print_schedule(self):
        try:
            prefs = self.scheduler.prefs
            print()
            print("  +-----------------------------------------------+")
            print("  |        Hydrate & Stretch -- Schedule          |")
            print("  +-----------------------------------------------+")
            for kind in ReminderKind:
                s = prefs.settings(kind)
                state = f"every {s.interval_minutes:>3d} min" if s.enabled else "off"
                print(f"  |  {kind.label:<12s} {state:<32s} |")
            if prefs.work_hours_only:
                hours = f"{format_hhmm(prefs.work_start)}-{format_hhmm(prefs.work_end)}"
                print(f"  |  Work hours   {hours:<32s} |")
            if prefs.weekdays_only:
                print("  |  Weekdays only                                |")
            print("  +-----------------------------------------------+")
            if not HAS_TRAY:
                print("\n  [!] No tray icon (pystray not available).")
                print("      pip install pystray pillow   (Ctrl+Q quits)")
            print()
        except (UnicodeEncodeError, OSError):
            pass  # silently skip on consoles that can't print

    # ━━━ System Tray ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def _all_off(self) -> bool:
        prefs = self.scheduler.prefs
        return not any(prefs.settings(k).enabled for k in ReminderKind)

    def _update_tray_icon(self) -> None:
        if self.tray is not None:
            try:
                self.tray.icon = create_drop_icon(64, dimmed=self._all_off())
                self.tray.title = "Hydrate & Stretch (off)" if self._all_off() else "Hydrate & Stretch"
            except Exception as e:
                logger.debug("Tray icon update failed: %s", e)

    def _run_tray(self) -> None:
        menu = pystray.Menu(
            # Hidden default item for left-click
            pystray.MenuItem("Open", lambda icon, item: self.root.after(0, self._show_settings),
                             default=True, visible=False),
            pystray.MenuItem("Open Hydrate & Stretch",
                lambda icon, item: self.root.after(0, self._show_settings)),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("💧  Test hydration",
                lambda icon, item: self.root.after(0, self._test, ReminderKind.HYDRATE)),
            pystray.MenuItem("🧘  Test stretch",
                lambda icon, item: self.root.after(0, self._test, ReminderKind.STRETCH)),
            pystray.MenuItem("Reset timers",
                lambda icon, item: self.root.after(0, self._reset_timers)),
            pystray.MenuItem("Launch at login",
                lambda icon, item: self.root.after(0, self._set_launch_at_login,
                                                   not self._launch_at_login),
                checked=lambda item: self._launch_at_login),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._quit),
        )
        self.tray = pystray.Icon("hydrate_stretch", create_drop_icon(64, dimmed=self._all_off()),
                                 "Hydrate & Stretch", menu)
        self.tray.run()

    def _quit(self, icon: Optional[Any] = None, item: Optional[Any] = None) -> None:
        self.scheduler.stop()
        if self.tray is not None:
            self.tray.stop()
        if self.instance is not None:
            self.instance.release()
        self.root.after(0, self.root.quit)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Hydrate & Stretch reminder")
    parser.add_argument("--test", action="store_true", help="Use 1-minute intervals for testing")
    parser.add_argument("--hidden", action="store_true", help="Start in the tray without opening settings")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every scheduler decision")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="  [%(levelname).1s] %(message)s")
    if args.test:
        print("\n  [!] TEST MODE: Using 1-minute intervals\n")

    instance = SingleInstance()
    if not instance.acquire():
        print("  [!] Hydrate & Stretch is already running; showing it.")
        instance.notify_running()
        return 0

    try:
        HydrateStretchApp(test_mode=args.test, hidden=args.hidden, instance=instance)
    finally:
        instance.release()
    return 0


if __name__ == "__main__":
    sys.exit(main())
