"""
Game logic for Da Vinci Code.

This module implements the two-player game state machine: dealing the
opening hands, joker arrangement, the one-time color reveal, the
draw/guess turn loop and the end of the game.

Game flow:
    1. Both players ready up (handled by the game service, before a Game
       exists).
    2. DEALT: each player picks how many black and white cards to start
       with (4 in total). Once both picked, hands are dealt.
    3. ARRANGING: players holding a joker submit the order of their hand.
    4. Reveal: once both hands are arranged each player sees the colors of
       the opponent's hand (ranks hidden). The game moves to TURN_LOOP.
    5. TURN_LOOP: the turn owner draws a card, then guesses opponent cards.
       A correct guess flips the card and keeps the turn; a wrong guess
       flips the guesser's freshly drawn card and passes the turn.
    6. FINISHED: a player whose whole hand is flipped loses.

Every method either raises a GameError without changing anything the
caller will persist, or mutates the game and returns the Notices that
describe the change to the players.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cards import Card, Color, Deck, Rank, sort_hand
from errors import (
    ResourceExhaustion,
    StateFailure,
    ValidationFailure,
    ALREADY_ARRANGED,
    ALREADY_DREW,
    CARD_ALREADY_FLIPPED,
    DECK_EMPTY,
    INVALID_CARD_COUNT,
    INVALID_INDEX,
    INVALID_ORDER,
    MUST_DRAW_FIRST,
    NO_PENDING_CARD,
    NOT_IN_GAME,
    NOT_YOUR_TURN,
    PLACEMENT_PENDING,
    UNKNOWN_CARD,
    WRONG_PHASE,
)
from placement import (
    find_new_card,
    insert_card,
    is_valid_order,
    legal_positions,
    same_cards,
)

INITIAL_HAND_SIZE = 4
PLAYERS_PER_GAME = 2


class GamePhase(str, Enum):
    """
    Phases of a game.

    DEALT: waiting for both players to choose their opening split.
    ARRANGING: hands dealt, waiting for joker holders to order their hand.
    TURN_LOOP: colors revealed, players take turns drawing and guessing.
    FINISHED: one hand is fully flipped.
    """

    DEALT = "dealt"
    ARRANGING = "arranging"
    TURN_LOOP = "turn_loop"
    FINISHED = "finished"


@dataclass
class Notice:
    """
    A message produced by a game transition.

    Attributes:
        event: Outbound event name.
        data: Event payload.
        to: Recipient user ID, or None for the whole room.
        exclude: User ID to skip when broadcasting to the room.
    """

    event: str
    data: dict = field(default_factory=dict)
    to: Optional[int] = None
    exclude: Optional[int] = None

    def to_message(self) -> dict:
        return {"type": self.event, **self.data}


@dataclass
class PlayerState:
    """
    One seat of a game.

    Attributes:
        user_id: Authenticated user ID.
        nickname: Display name, looked up when the game starts.
        hand: Ordered hand. Only its colors and flipped ranks are public.
        arrangement_done: Whether the opening hand order is final.
        black_count: Opening black cards requested.
        white_count: Opening white cards requested.
        last_drawn: Most recently drawn card (flipped on a wrong guess).
        pending_card: Drawn card waiting for the player to place it.
    """

    user_id: int
    nickname: str
    hand: list[Card] = field(default_factory=list)
    arrangement_done: bool = False
    black_count: int = 0
    white_count: int = 0
    last_drawn: Optional[Card] = None
    pending_card: Optional[Card] = None

    def has_chosen(self) -> bool:
        return self.black_count + self.white_count == INITIAL_HAND_SIZE

    def has_joker(self) -> bool:
        return any(c.is_joker for c in self.hand)

    def all_flipped(self) -> bool:
        """Check if every card of the hand has been revealed."""
        return bool(self.hand) and all(c.flipped for c in self.hand)

    def index_of(self, card: Card) -> Optional[int]:
        for i, held in enumerate(self.hand):
            if held.same_card(card):
                return i
        return None

    def hand_view(self) -> list[dict]:
        """The owner's view of the hand."""
        return [c.to_dict() for c in self.hand]

    def opponent_view(self) -> list[dict]:
        """The hand as the opponent sees it: colors, plus flipped ranks."""
        return [c.to_opponent_dict() for c in self.hand]

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "nickname": self.nickname,
            "hand": self.hand_view(),
            "arrangementDone": self.arrangement_done,
            "blackCount": self.black_count,
            "whiteCount": self.white_count,
            "lastDrawn": self.last_drawn.to_dict() if self.last_drawn else None,
            "pendingCard": self.pending_card.to_dict() if self.pending_card else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PlayerState":
        return cls(
            user_id=int(d["userId"]),
            nickname=d.get("nickname", ""),
            hand=[Card.from_dict(c) for c in d.get("hand", [])],
            arrangement_done=d.get("arrangementDone", False),
            black_count=d.get("blackCount", 0),
            white_count=d.get("whiteCount", 0),
            last_drawn=Card.from_dict(d["lastDrawn"]) if d.get("lastDrawn") else None,
            pending_card=Card.from_dict(d["pendingCard"]) if d.get("pendingCard") else None,
        )


@dataclass
class Game:
    """
    Root aggregate for one room's game.

    Attributes:
        room_id: Room this game belongs to.
        players: User ID -> PlayerState, always exactly two seats.
        black_deck: Remaining black cards.
        white_deck: Remaining white cards.
        turn_owner: User ID whose turn it is.
        phase: Current GamePhase.
        colors_revealed: One-shot flag for the opponent color reveal.
        has_drawn: Whether the turn owner already drew this turn.
        winner: Winning user ID once FINISHED.
    """

    room_id: int
    players: dict[int, PlayerState]
    black_deck: Deck
    white_deck: Deck
    turn_owner: int
    phase: GamePhase = GamePhase.DEALT
    colors_revealed: bool = False
    has_drawn: bool = False
    winner: Optional[int] = None

    @classmethod
    def create(
        cls,
        room_id: int,
        nicknames: dict[int, str],
        rng: Optional[random.Random] = None,
    ) -> "Game":
        """
        Start a new game: shuffle both decks and pick who goes first.

        Args:
            room_id: Room the game is played in.
            nicknames: User ID -> display name for both seated players.
            rng: Optional random source (for deterministic tests).
        """
        if len(nicknames) != PLAYERS_PER_GAME:
            raise StateFailure(WRONG_PHASE, f"A game needs exactly {PLAYERS_PER_GAME} players")
        rng = rng or random.Random()
        players = {
            uid: PlayerState(user_id=uid, nickname=name)
            for uid, name in sorted(nicknames.items())
        }
        return cls(
            room_id=room_id,
            players=players,
            black_deck=Deck.shuffled(Color.BLACK, rng),
            white_deck=Deck.shuffled(Color.WHITE, rng),
            turn_owner=rng.choice(sorted(players)),
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_player(self, user_id: int) -> PlayerState:
        player = self.players.get(user_id)
        if player is None:
            raise StateFailure(NOT_IN_GAME, "You are not playing in this room.")
        return player

    def opponent_of(self, user_id: int) -> PlayerState:
        for uid, player in self.players.items():
            if uid != user_id:
                return player
        raise StateFailure(NOT_IN_GAME, "No opponent in this game.")

    def is_finished(self) -> bool:
        return self.phase == GamePhase.FINISHED

    def deck_counts(self) -> dict:
        return {
            Color.BLACK.value: self.black_deck.cards_remaining(),
            Color.WHITE.value: self.white_deck.cards_remaining(),
        }

    def _deck(self, color: Color) -> Deck:
        return self.black_deck if color == Color.BLACK else self.white_deck

    def _require_phase(self, *phases: GamePhase) -> None:
        if self.phase not in phases:
            raise StateFailure(
                WRONG_PHASE,
                f"Action not allowed while the game is {self.phase.value}.",
            )

    def _require_turn(self, user_id: int) -> PlayerState:
        player = self.get_player(user_id)
        if self.turn_owner != user_id:
            raise StateFailure(NOT_YOUR_TURN, "Not your turn.")
        if player.pending_card is not None:
            raise StateFailure(PLACEMENT_PENDING, "Place your drawn card first.")
        return player

    # -------------------------------------------------------------------------
    # Start and deal
    # -------------------------------------------------------------------------

    def start_notices(self) -> list[Notice]:
        starter = self.players[self.turn_owner]
        return [Notice("gameStart", {
            "roomId": self.room_id,
            "starterUserId": starter.user_id,
            "starterNickname": starter.nickname,
            "players": [
                {"userId": p.user_id, "nickname": p.nickname}
                for p in self.players.values()
            ],
            "message": f"Game started! {starter.nickname} goes first. "
                       f"Choose {INITIAL_HAND_SIZE} cards.",
        })]

    def choose_initial_cards(self, user_id: int, black_count: int, white_count: int) -> list[Notice]:
        """
        Record a player's opening split. Deals once both players chose.

        A player may change their choice until the deal happens.
        """
        self._require_phase(GamePhase.DEALT)
        player = self.get_player(user_id)
        if black_count < 0 or white_count < 0 or black_count + white_count != INITIAL_HAND_SIZE:
            raise ValidationFailure(
                INVALID_CARD_COUNT,
                f"Must pick exactly {INITIAL_HAND_SIZE} cards (black + white = {INITIAL_HAND_SIZE}).",
            )

        player.black_count = black_count
        player.white_count = white_count
        notices = [Notice("initialCardsChosen", {
            "userId": user_id,
            "nickname": player.nickname,
            "blackCount": black_count,
            "whiteCount": white_count,
        })]

        if all(p.has_chosen() for p in self.players.values()):
            notices.extend(self._deal())
        return notices

    def _deal(self) -> list[Notice]:
        black_needed = sum(p.black_count for p in self.players.values())
        white_needed = sum(p.white_count for p in self.players.values())
        if black_needed > self.black_deck.cards_remaining():
            raise ResourceExhaustion(DECK_EMPTY, "Not enough black cards left.")
        if white_needed > self.white_deck.cards_remaining():
            raise ResourceExhaustion(DECK_EMPTY, "Not enough white cards left.")

        notices = []
        for uid, player in self.players.items():
            drawn = [self.black_deck.draw() for _ in range(player.black_count)]
            drawn += [self.white_deck.draw() for _ in range(player.white_count)]
            player.hand = sort_hand(drawn)
            player.arrangement_done = not player.has_joker()

            notices.append(Notice("handDeck", {
                "hand": player.hand_view(),
                "message": f"Your initial {INITIAL_HAND_SIZE} cards assigned.",
            }, to=uid))
            if not player.arrangement_done:
                notices.append(self._joker_prompt(player))

        self.phase = GamePhase.ARRANGING
        notices.extend(self._reveal_if_ready())
        return notices

    # -------------------------------------------------------------------------
    # Arrangement and reveal
    # -------------------------------------------------------------------------

    def arrange_hand(self, user_id: int, new_order: list[Card]) -> list[Notice]:
        """Accept a joker holder's full hand order."""
        self._require_phase(GamePhase.ARRANGING)
        player = self.get_player(user_id)
        if player.arrangement_done:
            raise StateFailure(ALREADY_ARRANGED, "Your hand is already arranged.")
        if len(new_order) != len(player.hand):
            raise ValidationFailure(INVALID_ORDER, "Invalid newOrder length.")
        if not same_cards(player.hand, new_order):
            raise ValidationFailure(UNKNOWN_CARD, "newOrder has unknown card.")
        if not is_valid_order(new_order):
            raise ValidationFailure(
                INVALID_ORDER,
                "Numbers must ascend, and black comes before white on equal numbers.",
            )

        held = {c.key: c for c in player.hand}
        player.hand = [held[c.key] for c in new_order]
        player.arrangement_done = True

        notices = [Notice("handDeck", {
            "hand": player.hand_view(),
            "message": "Your final hand arrangement updated.",
        }, to=user_id)]
        notices.extend(self._reveal_if_ready())
        return notices

    def _reveal_if_ready(self) -> list[Notice]:
        if self.colors_revealed:
            return []
        if not all(p.arrangement_done for p in self.players.values()):
            return []

        self.colors_revealed = True
        self.phase = GamePhase.TURN_LOOP
        self.has_drawn = False

        notices = []
        for uid in self.players:
            opponent = self.opponent_of(uid)
            notices.append(Notice("opponentCard", {
                "opponentUserId": opponent.user_id,
                "opponentNickname": opponent.nickname,
                "cards": opponent.opponent_view(),
                "message": "Opponent color arrangement revealed (numbers hidden).",
            }, to=uid))
        notices.append(self._turn_notice())
        return notices

    # -------------------------------------------------------------------------
    # Turn loop
    # -------------------------------------------------------------------------

    def draw_card(self, user_id: int, color: Color) -> list[Notice]:
        """
        Draw from one color deck.

        An unambiguous numbered card is placed right away. A joker, or a card
        that fits next to a joker run, waits for the player to place it.
        """
        self._require_phase(GamePhase.TURN_LOOP)
        player = self._require_turn(user_id)
        if self.has_drawn:
            raise StateFailure(ALREADY_DREW, "You already drew a card this turn.")

        card = self._deck(color).draw()
        if card is None:
            raise ResourceExhaustion(DECK_EMPTY, f"No more {color.value} cards left.")

        self.has_drawn = True
        player.last_drawn = Card(card.color, card.rank)
        positions = legal_positions(player.hand, card)

        if len(positions) == 1:
            index = positions[0]
            player.hand = insert_card(player.hand, card, index)
            return [
                Notice("drawCard", {
                    "card": card.to_dict(),
                    "index": index,
                    "hand": player.hand_view(),
                    "decks": self.deck_counts(),
                    "message": f"You drew {card} at index {index}.",
                }, to=user_id),
                self._new_card_notice(player, card, index),
            ]

        player.pending_card = card
        return [
            Notice("drawCard", {
                "card": card.to_dict(),
                "index": None,
                "hand": player.hand_view(),
                "decks": self.deck_counts(),
                "message": f"You drew {card}.",
            }, to=user_id),
            self._placement_prompt(player),
        ]

    def place_new_card(self, user_id: int, new_order: list[Card]) -> list[Notice]:
        """
        Place the pending card.

        `new_order` must be the current hand with the pending card inserted
        at one of its legal positions; existing cards cannot move.
        """
        self._require_phase(GamePhase.TURN_LOOP)
        player = self.get_player(user_id)
        card = player.pending_card
        if card is None:
            raise StateFailure(NO_PENDING_CARD, "You have no card waiting to be placed.")
        if len(new_order) != len(player.hand) + 1:
            raise ValidationFailure(INVALID_ORDER, "newOrder length mismatch.")

        index = find_new_card(player.hand, new_order)
        if index is None or not new_order[index].same_card(card):
            raise ValidationFailure(UNKNOWN_CARD, "newOrder has invalid card.")
        rest = new_order[:index] + new_order[index + 1:]
        if [c.key for c in rest] != [c.key for c in player.hand]:
            raise ValidationFailure(INVALID_ORDER, "Cards already in your hand cannot be moved.")
        if index not in legal_positions(player.hand, card):
            raise ValidationFailure(INVALID_ORDER, f"{card} cannot be placed at index {index}.")

        player.hand = insert_card(player.hand, card, index)
        player.pending_card = None
        return [
            Notice("handDeck", {
                "hand": player.hand_view(),
                "index": index,
                "message": "Newly drawn card placed.",
            }, to=user_id),
            self._new_card_notice(player, card, index),
        ]

    def guess_card(self, user_id: int, index: int, rank: Rank) -> list[Notice]:
        """
        Guess the rank of an opponent card.

        Correct: the card flips and the guesser keeps the turn.
        Wrong: the guesser's last drawn card flips and the turn passes.
        """
        self._require_phase(GamePhase.TURN_LOOP)
        player = self._require_turn(user_id)
        decks_empty = self.black_deck.is_empty() and self.white_deck.is_empty()
        if not self.has_drawn and not decks_empty:
            raise StateFailure(MUST_DRAW_FIRST, "Draw a card before guessing.")

        opponent = self.opponent_of(user_id)
        if not 0 <= index < len(opponent.hand):
            raise ValidationFailure(INVALID_INDEX, f"Card index {index} is out of range.")
        target = opponent.hand[index]
        if target.flipped:
            raise ValidationFailure(CARD_ALREADY_FLIPPED, "That card is already revealed.")

        if target.rank == rank:
            target.flipped = True
            notices = [Notice("correctGuess", {
                "userId": user_id,
                "nickname": player.nickname,
                "targetUserId": opponent.user_id,
                "index": index,
                "card": target.to_opponent_dict(),
                "message": f"{player.nickname} guessed correctly!",
            })]
            if opponent.all_flipped():
                notices.extend(self._finish(user_id, reason="allFlipped"))
            return notices

        notices = [Notice("wrongGuess", {
            "userId": user_id,
            "nickname": player.nickname,
            "targetUserId": opponent.user_id,
            "index": index,
            "guess": rank.value,
            "message": f"{player.nickname} guessed wrong.",
        })]
        notices.extend(self._flip_penalty(player))
        if player.all_flipped():
            notices.extend(self._finish(opponent.user_id, reason="allFlipped"))
        else:
            self._pass_turn()
            notices.append(self._turn_notice())
        return notices

    def end_turn(self, user_id: int) -> list[Notice]:
        """Voluntarily pass the turn to the opponent."""
        self._require_phase(GamePhase.TURN_LOOP)
        self._require_turn(user_id)
        self._pass_turn()
        return [self._turn_notice()]

    def forfeit(self, user_id: int) -> list[Notice]:
        """End the game with the other player as winner."""
        if self.is_finished():
            return []
        self.get_player(user_id)
        return self._finish(self.opponent_of(user_id).user_id, reason="forfeit")

    def _flip_penalty(self, player: PlayerState) -> list[Notice]:
        if player.last_drawn is None:
            return []
        index = player.index_of(player.last_drawn)
        player.last_drawn = None
        if index is None or player.hand[index].flipped:
            return []
        card = player.hand[index]
        card.flipped = True
        return [Notice("cardFlipped", {
            "userId": player.user_id,
            "nickname": player.nickname,
            "index": index,
            "card": card.to_opponent_dict(),
            "message": f"{player.nickname}'s drawn card is revealed.",
        })]

    def snapshot_notices(self, user_id: int) -> list[Notice]:
        """Everything a reconnecting player needs to pick the game back up."""
        player = self.get_player(user_id)
        notices = [Notice("handDeck", {
            "hand": player.hand_view(),
            "phase": self.phase.value,
            "message": "Game resumed.",
        }, to=user_id)]
        if player.pending_card is not None:
            notices.append(self._placement_prompt(player))
        elif self.phase == GamePhase.ARRANGING and not player.arrangement_done:
            notices.append(self._joker_prompt(player))
        if self.colors_revealed:
            opponent = self.opponent_of(user_id)
            notices.append(Notice("opponentCard", {
                "opponentUserId": opponent.user_id,
                "opponentNickname": opponent.nickname,
                "cards": opponent.opponent_view(),
                "message": "Opponent hand (numbers hidden).",
            }, to=user_id))
            turn = self._turn_notice()
            turn.to = user_id
            notices.append(turn)
        return notices

    def _joker_prompt(self, player: PlayerState) -> Notice:
        slots = list(range(len(player.hand)))
        return Notice("arrangeCard", {
            "hand": player.hand_view(),
            "initial": True,
            "jokers": [
                {"card": c.to_dict(), "positions": slots}
                for c in player.hand if c.is_joker
            ],
            "message": "You hold a joker. Submit your hand in the order you want.",
        }, to=player.user_id)

    def _placement_prompt(self, player: PlayerState) -> Notice:
        card = player.pending_card
        if card.is_joker:
            message = "You drew a joker. Place it anywhere you want."
        else:
            message = "Your card fits next to a joker. Choose where to place it."
        return Notice("arrangeCard", {
            "card": card.to_dict(),
            "positions": legal_positions(player.hand, card),
            "hand": player.hand_view(),
            "initial": False,
            "message": message,
        }, to=player.user_id)

    def _pass_turn(self) -> None:
        self.turn_owner = self.opponent_of(self.turn_owner).user_id
        self.has_drawn = False

    def _turn_notice(self) -> Notice:
        owner = self.players[self.turn_owner]
        return Notice("nowTurn", {
            "userId": owner.user_id,
            "nickname": owner.nickname,
            "message": f"It's {owner.nickname}'s turn.",
        })

    def _new_card_notice(self, player: PlayerState, card: Card, index: int) -> Notice:
        opponent = self.opponent_of(player.user_id)
        return Notice("opponentNewCard", {
            "userId": player.user_id,
            "nickname": player.nickname,
            "color": card.color.value,
            "index": index,
            "cards": player.opponent_view(),
            "decks": self.deck_counts(),
            "message": f"{player.nickname} placed a {card.color.value} card at index {index}.",
        }, to=opponent.user_id)

    def _finish(self, winner_id: int, reason: str) -> list[Notice]:
        self.phase = GamePhase.FINISHED
        self.winner = winner_id
        winner = self.players[winner_id]
        return [
            Notice("gameOver", {
                "result": "win" if uid == winner_id else "lose",
                "winnerUserId": winner_id,
                "winnerNickname": winner.nickname,
                "reason": reason,
                "hands": {
                    str(uid): self.players[uid].hand_view(),
                    str(self.opponent_of(uid).user_id): self.opponent_of(uid).opponent_view(),
                },
            }, to=uid)
            for uid in self.players
        ]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "roomId": self.room_id,
            "phase": self.phase.value,
            "turn": self.turn_owner,
            "alreadyRevealed": self.colors_revealed,
            "hasDrawn": self.has_drawn,
            "winner": self.winner,
            "players": {str(uid): p.to_dict() for uid, p in self.players.items()},
            "blackDeck": self.black_deck.to_list(),
            "whiteDeck": self.white_deck.to_list(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Game":
        return cls(
            room_id=d["roomId"],
            players={int(uid): PlayerState.from_dict(p) for uid, p in d["players"].items()},
            black_deck=Deck.from_list(Color.BLACK, d.get("blackDeck", [])),
            white_deck=Deck.from_list(Color.WHITE, d.get("whiteDeck", [])),
            turn_owner=int(d["turn"]),
            phase=GamePhase(d["phase"]),
            colors_revealed=d.get("alreadyRevealed", False),
            has_drawn=d.get("hasDrawn", False),
            winner=d.get("winner"),
        )
