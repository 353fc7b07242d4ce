import argparse
import logging
import signal
import sys
import threading
import tkinter as tk
from tkinter import ttk, messagebox

from netpong.common import (
    HOST, GUEST, DIFFICULTIES, DEFAULT_DIFFICULTY, DEFAULT_ROUNDS, DEFAULT_PORT
)
from netpong.errors import ExitStatus, TransportError
from netpong.handshake import host_handshake, guest_handshake
from netpong.peer import PongPeer
from netpong.transport import Transport

logger = logging.getLogger("netpong")


def start_game(settings, stop=None, ui=True) -> ExitStatus:
    """Handshake, then run the session until it ends. Returns the process exit status."""
    role = settings["role"]
    stop = stop or threading.Event()

    # Runs on the main thread between bytecodes, possibly inside a lock the
    # main thread holds; it only flags the event, the loops do the shutdown
    def on_interrupt(signum, frame):
        stop.set()

    on_main_thread = threading.current_thread() is threading.main_thread()
    if on_main_thread:
        previous_handler = signal.signal(signal.SIGINT, on_interrupt)

    transport = None
    try:
        if role == HOST:
            transport = Transport.listen(settings["port"])
            print(f"Waiting for challengers on port {settings['port']}")
            session = host_handshake(transport, settings["difficulty"], settings["rounds"], stop)
        else:
            transport = Transport.connect(settings["host_ip"], settings["port"])
            print(f"Joining {settings['host_ip']}:{settings['port']}")
            session = guest_handshake(transport, stop)
        if session is None or stop.is_set():
            return ExitStatus.OK

        peer = PongPeer(transport, session)
        peer.start()
        if ui:
            from netpong.game import run_pygame_loop
            run_pygame_loop(peer, stop)
        else:
            run_headless(peer, stop)
        peer.join()
        return peer.exit_status
    except TransportError as e:
        logger.error("fatal: %s", e)
        print(f"netpong: {e}", file=sys.stderr)
        return e.status
    finally:
        if transport is not None:
            transport.close()
        if on_main_thread and previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


def run_headless(peer, stop, poll=0.05):
    """Wait out the session without a window; `stop` being set ends it."""
    while not peer.stopped:
        if stop.is_set():
            logger.info("interrupted")
            peer.stop()
            break
        stop.wait(poll)


def prompt_host_settings(settings):
    """Console prompt for whatever the host did not pass on the command line."""
    while settings.get("difficulty") not in DIFFICULTIES:
        settings["difficulty"] = input("Please select the difficulty level (easy, medium or hard): ").strip()
    while not settings.get("rounds"):
        try:
            rounds = int(input("Please enter the maximum number of rounds to play: "))
        except ValueError:
            continue
        if rounds > 0:
            settings["rounds"] = rounds
    return settings


def settings_dialog():
    """tkinter settings window; returns a settings dict or None if closed."""
    result = {}
    root = tk.Tk()
    root.title("NetPong Settings")

    role_var = tk.StringVar(value=HOST)
    ip_var = tk.StringVar(value="127.0.0.1")
    port_var = tk.IntVar(value=DEFAULT_PORT)
    difficulty_var = tk.StringVar(value=DEFAULT_DIFFICULTY)
    rounds_var = tk.IntVar(value=DEFAULT_ROUNDS)

    frm = ttk.Frame(root, padding=16)
    frm.grid(sticky="nsew")
    root.columnconfigure(0, weight=1)
    root.rowconfigure(0, weight=1)

    ttk.Label(frm, text="Role:").grid(row=0, column=0, sticky="w")
    role_combo = ttk.Combobox(frm, textvariable=role_var, values=[HOST, GUEST], state="readonly", width=12)
    role_combo.grid(row=0, column=1, sticky="ew")

    ttk.Label(frm, text="Host address (for guest):").grid(row=1, column=0, sticky="w")
    ip_entry = ttk.Entry(frm, textvariable=ip_var, width=18)
    ip_entry.grid(row=1, column=1, sticky="ew")

    ttk.Label(frm, text="Port:").grid(row=2, column=0, sticky="w")
    port_entry = ttk.Entry(frm, textvariable=port_var, width=10)
    port_entry.grid(row=2, column=1, sticky="ew")

    ttk.Label(frm, text="Difficulty:").grid(row=3, column=0, sticky="w")
    difficulty_combo = ttk.Combobox(frm, textvariable=difficulty_var, values=list(DIFFICULTIES),
                                    state="readonly", width=12)
    difficulty_combo.grid(row=3, column=1, sticky="w")

    ttk.Label(frm, text="Rounds:").grid(row=4, column=0, sticky="w")
    rounds_spin = ttk.Spinbox(frm, from_=1, to=50, textvariable=rounds_var, width=6)
    rounds_spin.grid(row=4, column=1, sticky="w")

    status_lbl = ttk.Label(frm, text="Tip: Host sets difficulty & rounds. Guest needs the host address.")
    status_lbl.grid(row=5, column=0, columnspan=2, sticky="w", pady=(8,0))

    def on_role_change(*_):
        hosting = role_var.get() == HOST
        ip_entry.configure(state="disabled" if hosting else "normal")
        difficulty_combo.configure(state="readonly" if hosting else "disabled")
        rounds_spin.configure(state="normal" if hosting else "disabled")
    role_var.trace_add("write", on_role_change)
    on_role_change()

    def on_start():
        try:
            settings = dict(
                role=role_var.get(),
                host_ip=ip_var.get().strip(),
                port=int(port_var.get()),
                difficulty=difficulty_var.get(),
                rounds=int(rounds_var.get()),
            )
        except (tk.TclError, ValueError) as e:
            messagebox.showerror("Error", f"Invalid settings: {e}")
            return
        if settings["role"] == GUEST and not settings["host_ip"]:
            messagebox.showerror("Error", "Please enter the host address to join.")
            return
        if settings["rounds"] < 1:
            messagebox.showerror("Error", "Play at least one round.")
            return
        result.update(settings)
        root.destroy()

    start_btn = ttk.Button(frm, text="Start", command=on_start)
    start_btn.grid(row=6, column=0, columnspan=2, pady=(12,0), sticky="ew")

    root.mainloop()
    return result or None


def positive_int(text):
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Peer-to-peer pong over UDP.",
        epilog="Host: %(prog)s --host PORT    Guest: %(prog)s HOSTNAME PORT    "
               "No arguments: settings window.")
    parser.add_argument("--host", metavar="PORT", type=int, dest="host_port",
                        help="host a game, listening on PORT")
    parser.add_argument("target", nargs="*", metavar="TARGET",
                        help="HOSTNAME PORT of the game to join")
    parser.add_argument("--difficulty", choices=list(DIFFICULTIES),
                        help="ball speed (host only)")
    parser.add_argument("--rounds", type=positive_int, help="rounds to play (host only)")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    args = parser.parse_args(argv)

    if args.host_port is not None and args.target:
        parser.error("--host takes no HOSTNAME PORT")
    if args.host_port is None and args.target and len(args.target) != 2:
        parser.error("to join a game give HOSTNAME PORT")
    if len(args.target) == 2:
        try:
            args.target[1] = int(args.target[1])
        except ValueError:
            parser.error(f"invalid port: {args.target[1]!r}")
    return args


def settings_from_args(args):
    if args.host_port is not None:
        return prompt_host_settings(dict(role=HOST, port=args.host_port,
                                         difficulty=args.difficulty, rounds=args.rounds))
    if args.target:
        return dict(role=GUEST, host_ip=args.target[0], port=args.target[1])
    return settings_dialog()


def setup_logging(role, debug=False):
    logging.basicConfig(
        filename=f"netpong-{role}.log",
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(threadName)s %(name)s %(levelname)s: %(message)s",
    )


def main(argv=None):
    args = parse_args(argv)
    settings = settings_from_args(args)
    if not settings:
        print("Nothing to do. Use --host PORT or HOSTNAME PORT (see --help).")
        return ExitStatus.OK
    setup_logging(settings["role"], args.debug)
    logger.info("starting as %s", settings["role"])
    return start_game(settings)


if __name__ == "__main__":
    sys.exit(int(main()))
