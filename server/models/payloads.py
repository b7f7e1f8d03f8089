"""
Inbound WebSocket payloads.

Clients send camelCase JSON (`roomId`, `blackCount`, `newOrder`, ...);
these models validate it and expose snake_case attributes. A payload that
fails validation becomes an INVALID_PAYLOAD error for the sender.
"""

from typing import Annotated, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cards import Card, Color, Rank
from errors import ValidationFailure, INVALID_PAYLOAD

RankValue = Union[Annotated[int, Field(ge=0, le=11)], Literal["joker"]]


class Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RoomPayload(Payload):
    room_id: int = Field(alias="roomId")


class ChatPayload(RoomPayload):
    message: str = Field(min_length=1, max_length=500)


class InitialCardsPayload(RoomPayload):
    black_count: int = Field(alias="blackCount", ge=0)
    white_count: int = Field(alias="whiteCount", ge=0)


class CardPayload(Payload):
    color: Color
    rank: RankValue

    def to_card(self) -> Card:
        return Card(self.color, Rank.parse(self.rank))


class NewOrderPayload(RoomPayload):
    new_order: list[CardPayload] = Field(alias="newOrder", min_length=1, max_length=26)

    def cards(self) -> list[Card]:
        return [c.to_card() for c in self.new_order]


class DrawCardPayload(RoomPayload):
    color: Color


class GuessCardPayload(RoomPayload):
    card_index: int = Field(alias="cardIndex")
    card_number: RankValue = Field(alias="cardNumber")

    def rank(self) -> Rank:
        return Rank.parse(self.card_number)


P = TypeVar("P", bound=Payload)


def parse_payload(model: type[P], data: dict) -> P:
    """
    Validate a raw message against a payload model.

    Raises:
        ValidationFailure: With a readable summary of the first problems.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in e.errors()[:3]
        )
        raise ValidationFailure(INVALID_PAYLOAD, f"Invalid payload ({problems})") from e
