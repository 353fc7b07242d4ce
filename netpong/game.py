import math
import time

import pygame

from .common import WIDTH, HEIGHT, PADLX, PADRX, PADDLE_REACH, HOST
from .peer import PongPeer

CELL = 20              # pixels per playfield cell
HUD_HEIGHT = 40
FPS = 60

BG = (10, 12, 24)
FG = (240, 240, 240)
FRAME = (200, 200, 200)
HOST_COLOR = (80, 180, 255)
GUEST_COLOR = (255, 140, 80)

# Host plays the right paddle with the arrow keys, guest the left one with W/S
KEYS_UP = (pygame.K_UP, pygame.K_w)
KEYS_DOWN = (pygame.K_DOWN, pygame.K_s)


# Render helpers
def draw_text(screen, txt, pos, size=24, color=FG, center=False):
    font = pygame.font.SysFont(None, size)
    s = font.render(txt, True, color)
    if center:
        pos = s.get_rect(center=pos).topleft
    screen.blit(s, pos)


def cell_rect(x, y, w=1, h=1):
    return pygame.Rect(x * CELL, HUD_HEIGHT + y * CELL, w * CELL, h * CELL)


def draw_frame(screen, frame, role, rounds):
    """Draw one frame: playfield, paddles, ball, scores and any countdown."""
    snap = frame.snapshot
    screen.fill(BG)

    pygame.draw.rect(screen, FRAME, cell_rect(0, 0, WIDTH, HEIGHT), width=2)
    mid = WIDTH // 2
    for y in range(1, HEIGHT - 1, 2):
        pygame.draw.rect(screen, FRAME, cell_rect(mid, y).inflate(-CELL + 4, 0))

    # Paddles
    for col, pad_y, color in ((PADLX, snap.pad_left_y, GUEST_COLOR),
                              (PADRX, snap.pad_right_y, HOST_COLOR)):
        top = max(1, pad_y - PADDLE_REACH)
        bottom = min(HEIGHT - 2, pad_y + PADDLE_REACH)
        if bottom >= top:
            pygame.draw.rect(screen, color, cell_rect(col, top, 1, bottom - top + 1))

    # Ball (may briefly leave the field on the side that does not own the goal)
    if 0 <= snap.ball_x < WIDTH and 0 <= snap.ball_y < HEIGHT:
        pygame.draw.rect(screen, FG, cell_rect(snap.ball_x, snap.ball_y).inflate(-4, -4))

    # HUD
    you = "right (Up/Down)" if role == HOST else "left (W/S)"
    draw_text(screen, f"{snap.score_left}", (WIDTH * CELL // 2 - 40, HUD_HEIGHT // 2),
              size=32, color=GUEST_COLOR, center=True)
    draw_text(screen, f"{snap.score_right}", (WIDTH * CELL // 2 + 40, HUD_HEIGHT // 2),
              size=32, color=HOST_COLOR, center=True)
    draw_text(screen, f"Round {min(snap.rounds_played + 1, rounds)}/{rounds}", (10, 10))
    draw_text(screen, f"You: {you}", (WIDTH * CELL - 200, 10))

    if frame.countdown_message:
        remaining = math.ceil(frame.countdown_until - time.monotonic())
        if remaining > 0:
            box = pygame.Rect(0, 0, 240, 90)
            box.center = cell_rect(0, 0, WIDTH, HEIGHT).center
            pygame.draw.rect(screen, BG, box)
            pygame.draw.rect(screen, FRAME, box, width=2)
            draw_text(screen, frame.countdown_message, (box.centerx, box.top + 28), size=30, center=True)
            draw_text(screen, str(remaining), (box.centerx, box.top + 64), size=30, center=True)


def run_pygame_loop(peer: PongPeer, interrupted=None):
    """
    Main-thread display and input for one peer. Returns when the session stops
    or the window is closed (which stops the session). Setting `interrupted`
    stops the session from this loop. The display is torn down only after
    the peer's threads have finished.
    """
    pygame.init()
    screen = pygame.display.set_mode((WIDTH * CELL, HEIGHT * CELL + HUD_HEIGHT))
    role = peer.role
    pygame.display.set_caption(f"NetPong - {role}")
    pygame.key.set_repeat(150, 40)
    clock = pygame.time.Clock()

    try:
        while not peer.stopped:
            if interrupted is not None and interrupted.is_set():
                peer.stop()
                break
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    peer.stop()
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        peer.stop()
                    elif event.key in KEYS_UP:
                        peer.state.move_paddle(role, -1)
                    elif event.key in KEYS_DOWN:
                        peer.state.move_paddle(role, 1)

            frame = peer.latest_frame.get()
            if frame:
                draw_frame(screen, frame, role, peer.session.rounds)
            pygame.display.flip()
            clock.tick(FPS)
    finally:
        peer.stop()
        peer.join()
        pygame.quit()
