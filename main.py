import logging
import sys
import time

import pygame

import config
from classes import DIFFICULTY_PROFILES, GameSession, Phase, format_time
from score_client import get_score_service
from shared.models import DIFFICULTY_LEVELS, ScoreServiceError

logger = logging.getLogger(__name__)

# Memory optimization - limit pygame features we don't need
pygame.display.init()
pygame.font.init()

# Load settings at startup
SETTINGS = config.load_settings()

# Colors
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
GRAY = (200, 200, 200)
BLUE = (0, 100, 255)
GREEN = (0, 200, 0)
RED = (200, 0, 0)
CARD_BACK_COLOR = (50, 50, 200)
CARD_FRONT_COLOR = (220, 220, 255)
CARD_MATCHED_COLOR = (200, 255, 200)
CARD_MISMATCHED_COLOR = (255, 210, 210)

# Fonts
FONT_SMALL = pygame.font.SysFont('Arial', 20)
FONT_MEDIUM = pygame.font.SysFont('Arial', 30)
FONT_LARGE = pygame.font.SysFont('Arial', 40)
FONT_CARD = pygame.font.SysFont('Arial', 16, bold=True)

# Game settings
FPS = 60
CARD_MARGIN = 10


class GameGUI:
    """Graphical user interface for the memory card game."""

    def __init__(self):
        """Initialize the game GUI."""
        self.session = None
        self.clock = pygame.time.Clock()
        self.screen = None
        self.width = 800
        self.height = 600
        self.card_width = 80
        self.card_height = 100
        self.board_margin_top = 110
        self.board_margin_left = 0
        self.message = ""
        self.message_timer = 0
        self.text_cache = {}  # Cache for rendered text
        self.player_name = ""
        self.db_mode = SETTINGS.get("mode", "local")
        self.server_url = SETTINGS.get("server_url")
        self.score_service = None

    def setup_window(self):
        """Set up the game window."""
        self.screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption("Memory Match")

    def get_player_name(self):
        """Let the player type a name; Enter confirms, an empty name skips high scores."""
        name = ""
        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    pygame.quit()
                    sys.exit()
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_RETURN:
                        return name.strip()
                    elif event.key == pygame.K_BACKSPACE:
                        name = name[:-1]
                    elif event.key == pygame.K_TAB:
                        # Toggle between local and remote high scores
                        self.db_mode = "remote" if self.db_mode == "local" else "local"
                    elif event.unicode.isprintable() and len(name) < 16:
                        name += event.unicode

            self.screen.fill(WHITE)
            title = self.render_text(FONT_LARGE, "MEMORY MATCH", BLUE)
            self.screen.blit(title, (self.width // 2 - title.get_width() // 2, 80))
            prompt = self.render_text(FONT_MEDIUM, "Enter your name:", BLACK)
            self.screen.blit(prompt, (self.width // 2 - prompt.get_width() // 2, 200))

            input_rect = pygame.Rect(self.width // 2 - 150, 250, 300, 50)
            pygame.draw.rect(self.screen, GRAY, input_rect, 0, 5)
            pygame.draw.rect(self.screen, BLUE, input_rect, 2, 5)
            name_text = FONT_MEDIUM.render(name, True, BLACK)
            self.screen.blit(name_text, (input_rect.x + 10, input_rect.centery - name_text.get_height() // 2))

            mode = f"High scores: {self.db_mode} (Tab to switch)"
            if self.db_mode == "remote":
                mode += f" - {self.server_url}"
            mode_text = self.render_text(FONT_SMALL, mode, GREEN)
            self.screen.blit(mode_text, (self.width // 2 - mode_text.get_width() // 2, 330))

            pygame.display.flip()
            self.clock.tick(FPS)

    def show_start_screen(self):
        """Show the game start screen and return the chosen difficulty level."""
        buttons = []
        button_width = 200
        button_height = 60
        button_margin = 20
        labels = list(DIFFICULTY_LEVELS) + ["scores"]
        for i, label in enumerate(labels):
            rect = pygame.Rect(self.width // 2 - button_width // 2,
                               200 + i * (button_height + button_margin),
                               button_width, button_height)
            buttons.append((label, rect))

        while True:
            mouse_pos = pygame.mouse.get_pos()
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    pygame.quit()
                    sys.exit()
                elif event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_1, pygame.K_2, pygame.K_3):
                        return DIFFICULTY_LEVELS[event.key - pygame.K_1]
                    elif event.key == pygame.K_ESCAPE:
                        pygame.quit()
                        sys.exit()
                elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                    for label, rect in buttons:
                        if rect.collidepoint(event.pos):
                            if label == "scores":
                                self.show_high_scores_screen()
                            else:
                                return label

            self.screen.fill(WHITE)
            title = self.render_text(FONT_LARGE, "MEMORY MATCH", BLUE)
            self.screen.blit(title, (self.width // 2 - title.get_width() // 2, 80))
            hint = self.render_text(FONT_SMALL, "Find matching pairs before the time runs out", BLACK)
            self.screen.blit(hint, (self.width // 2 - hint.get_width() // 2, 140))

            for label, rect in buttons:
                hovered = rect.collidepoint(mouse_pos)
                if label == "scores":
                    color = GREEN if hovered else (100, 200, 100)
                    caption = "High Scores"
                else:
                    color = BLUE if hovered else (100, 100, 255)
                    profile = DIFFICULTY_PROFILES[label]
                    caption = f"{label.title()} ({profile.pair_count} pairs)"
                pygame.draw.rect(self.screen, color, rect, 0, 10)
                pygame.draw.rect(self.screen, WHITE, rect, 2, 10)
                text = self.render_text(FONT_SMALL, caption, WHITE)
                self.screen.blit(text, (rect.centerx - text.get_width() // 2, rect.centery - text.get_height() // 2))

            pygame.display.flip()
            self.clock.tick(FPS)

    def layout_board(self, profile):
        """Size and center the cards for a difficulty's grid."""
        rows, cols = profile.grid_dimensions
        max_card_width = (self.width - CARD_MARGIN * (cols + 1)) // cols
        max_card_height = (self.height - self.board_margin_top - CARD_MARGIN * (rows + 1)) // rows

        # Keep aspect ratio
        self.card_width = min(max_card_width, int(max_card_height * 0.8))
        self.card_height = int(self.card_width * 1.25)
        self.board_margin_left = (self.width - (cols * self.card_width + (cols - 1) * CARD_MARGIN)) // 2

    def get_card_rect(self, row, col):
        """Get the rectangle for a card at the given position."""
        x = self.board_margin_left + col * (self.card_width + CARD_MARGIN)
        y = self.board_margin_top + row * (self.card_height + CARD_MARGIN)
        return pygame.Rect(x, y, self.card_width, self.card_height)

    def get_card_at_pos(self, snapshot, pos):
        """Get the card under a screen position, or None."""
        for row in range(snapshot.difficulty.rows):
            for col in range(snapshot.difficulty.cols):
                if self.get_card_rect(row, col).collidepoint(pos):
                    return snapshot.card_at(row, col)
        return None

    def draw_card(self, card, rect):
        """Draw a card on the screen."""
        if card.is_flipped or card.is_matched:
            if card.is_matched:
                fill, border = CARD_MATCHED_COLOR, GREEN
            elif card.is_mismatched:
                fill, border = CARD_MISMATCHED_COLOR, RED
            else:
                fill, border = CARD_FRONT_COLOR, BLUE
            pygame.draw.rect(self.screen, fill, rect, 0, 5)
            pygame.draw.rect(self.screen, border, rect, 2, 5)
            text = self.render_text(FONT_CARD, card.value, border if card.is_matched else BLACK)
            self.screen.blit(text, (rect.centerx - text.get_width() // 2,
                                    rect.centery - text.get_height() // 2))
        else:
            pygame.draw.rect(self.screen, CARD_BACK_COLOR, rect, 0, 5)
            pygame.draw.rect(self.screen, BLUE, rect, 2, 5)

            # Card back design (simple pattern)
            for i in range(3):
                for j in range(4):
                    x = rect.left + rect.width * (i + 1) / 4
                    y = rect.top + rect.height * (j + 1) / 5
                    pygame.draw.circle(self.screen, WHITE, (x, y), 3)

    def draw_board(self, snapshot):
        """Draw the game board and all cards."""
        for row in range(snapshot.difficulty.rows):
            for col in range(snapshot.difficulty.cols):
                card = snapshot.card_at(row, col)
                if card:
                    self.draw_card(card, self.get_card_rect(row, col))

    def render_text(self, font, text, color):
        """Render and cache text to avoid recreating text surfaces."""
        cache_key = (font, text, color)
        if cache_key not in self.text_cache:
            if len(self.text_cache) > 200:
                self.text_cache.clear()
            self.text_cache[cache_key] = font.render(text, True, color)
        return self.text_cache[cache_key]

    def draw_ui(self, snapshot):
        """Draw the stats bar and the current message."""
        stats = [
            f"Player: {self.player_name or '-'}",
            f"Score: {snapshot.score}",
            f"Moves: {snapshot.moves}",
            f"Pairs: {snapshot.matched_pairs}/{snapshot.total_pairs}",
            f"Time: {format_time(snapshot.time)}",
        ]
        x = 10
        for line in stats:
            text = self.render_text(FONT_SMALL, line, BLACK)
            self.screen.blit(text, (x, 10))
            x += text.get_width() + 25

        help_text = self.render_text(FONT_SMALL, "R: restart   Esc: menu", GRAY)
        self.screen.blit(help_text, (self.width - help_text.get_width() - 10, self.height - 30))

        if self.message and pygame.time.get_ticks() < self.message_timer:
            message_text = self.render_text(FONT_MEDIUM, self.message, BLUE)
            self.screen.blit(message_text, (self.width // 2 - message_text.get_width() // 2, 50))

    def show_message(self, message, duration=1500):
        """Show a message for a duration in milliseconds."""
        self.message = message
        self.message_timer = pygame.time.get_ticks() + duration

    def draw_game_over(self, snapshot):
        """Draw the end-of-game overlay on top of the board."""
        overlay = pygame.Surface((self.width, self.height), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 180))
        self.screen.blit(overlay, (0, 0))

        title = "YOU WIN!" if snapshot.won else "TIME'S UP"
        lines = [
            (FONT_LARGE, title, GREEN if snapshot.won else RED),
            (FONT_MEDIUM, f"Score: {snapshot.score}   Moves: {snapshot.moves}", WHITE),
            (FONT_MEDIUM, f"Pairs: {snapshot.matched_pairs}/{snapshot.total_pairs}", WHITE),
        ]
        if snapshot.submission_notice:
            lines.append((FONT_SMALL, snapshot.submission_notice, GRAY))
        lines.append((FONT_SMALL, "R: play again   Esc: menu", WHITE))

        y = 180
        for font, line, color in lines:
            text = self.render_text(font, line, color)
            self.screen.blit(text, (self.width // 2 - text.get_width() // 2, y))
            y += text.get_height() + 20

    def show_high_scores_screen(self):
        """Show the top scores per difficulty until a key or click."""
        if self.score_service is None:
            self.score_service = get_score_service(self.db_mode, self.server_url)

        tables = {}
        error = None
        for level in DIFFICULTY_LEVELS:
            try:
                tables[level] = self.score_service.get_high_scores(level, limit=5)
            except ScoreServiceError as e:
                error = str(e)
                tables[level] = []

        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    pygame.quit()
                    sys.exit()
                elif event.type in (pygame.KEYDOWN, pygame.MOUSEBUTTONDOWN):
                    return

            self.screen.fill(WHITE)
            title = self.render_text(FONT_LARGE, "HIGH SCORES", BLUE)
            self.screen.blit(title, (self.width // 2 - title.get_width() // 2, 30))

            column_width = self.width // len(DIFFICULTY_LEVELS)
            for i, level in enumerate(DIFFICULTY_LEVELS):
                x = i * column_width + 20
                header = self.render_text(FONT_MEDIUM, level.title(), BLACK)
                self.screen.blit(header, (x, 110))
                if not tables[level]:
                    empty = self.render_text(FONT_SMALL, "No scores yet", GRAY)
                    self.screen.blit(empty, (x, 160))
                for rank, record in enumerate(tables[level], start=1):
                    line = f"{rank}. {record.username[:10]}  {record.score}"
                    text = self.render_text(FONT_SMALL, line, BLACK)
                    self.screen.blit(text, (x, 160 + (rank - 1) * 30))

            if error:
                error_text = self.render_text(FONT_SMALL, error[:80], RED)
                self.screen.blit(error_text, (self.width // 2 - error_text.get_width() // 2, self.height - 80))

            pygame.display.flip()
            self.clock.tick(FPS)

    def run_game(self, difficulty):
        """Run the game loop until the player returns to the menu."""
        if self.session is None:
            self.session = GameSession(difficulty, player_name=self.player_name,
                                       score_service=self.score_service)
            self.session.on("match", lambda cards: self.show_message(f"Match! {cards[0].value}"))
            self.session.on("mismatch", lambda cards: self.show_message("No match"))
            self.session.on("win", lambda record: self.show_message("All pairs found!"))
            self.session.on("time_up", lambda snapshot: self.show_message("Time's up!"))

        self.session.start_game(difficulty, now=time.monotonic())
        self.layout_board(self.session.difficulty)

        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    pygame.quit()
                    sys.exit()
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        return
                    elif event.key == pygame.K_r:
                        self.session.reset_game(now=time.monotonic())
                elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                    card = self.get_card_at_pos(self.session.snapshot(), event.pos)
                    if card:
                        self.session.flip(card.id, now=time.monotonic())

            self.session.update(time.monotonic())
            snapshot = self.session.snapshot()

            self.screen.fill(WHITE)
            self.draw_board(snapshot)
            self.draw_ui(snapshot)
            if snapshot.phase is Phase.COMPLETE:
                self.draw_game_over(snapshot)

            pygame.display.flip()
            self.clock.tick(FPS)


def main():
    """Main function to run the game."""
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    pygame.init()
    gui = GameGUI()
    gui.setup_window()

    gui.player_name = gui.get_player_name()
    gui.score_service = get_score_service(mode=gui.db_mode, server_url=gui.server_url)

    # Remember the chosen high-score mode for next time
    SETTINGS["mode"] = gui.db_mode
    config.save_settings(SETTINGS)

    while True:
        difficulty = gui.show_start_screen()
        gui.run_game(difficulty)


if __name__ == "__main__":
    main()
