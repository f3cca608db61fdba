from tortoise import fields
from tortoise.models import Model

from eventsite.roles import Role


class AbstractModel(Model):
    id = fields.UUIDField(primary_key=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        abstract = True


class Profile(AbstractModel):
    # id is the identity key issued by the auth provider, never generated here
    email = fields.CharField(max_length=320, null=True)
    full_name = fields.CharField(max_length=255, null=True)
    role = fields.CharEnumField(Role, default=Role.USER)
    referred_by = fields.ForeignKeyField(
        "models.Profile",
        related_name="referrals",
        null=True,
        on_delete=fields.SET_NULL,
    )
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "profiles"
        ordering = ["created_at"]


class Event(AbstractModel):
    title = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    start_at = fields.DatetimeField()
    end_at = fields.DatetimeField(null=True)
    location = fields.CharField(max_length=255, null=True)
    capacity = fields.IntField(null=True)
    min_role = fields.CharEnumField(Role, default=Role.USER)  # visibility gate

    class Meta:  # type: ignore
        table = "events"
        ordering = ["start_at"]


class Booking(AbstractModel):
    event = fields.ForeignKeyField(
        "models.Event", related_name="bookings", on_delete=fields.CASCADE
    )
    user = fields.ForeignKeyField(
        "models.Profile", related_name="bookings", on_delete=fields.CASCADE
    )
    transportation = fields.CharField(max_length=50, null=True)
    pickup_needed = fields.BooleanField(default=False)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]
        # one booking per (event, user); the only guard against double-booking
        unique_together = (("event", "user"),)


class Message(AbstractModel):
    sender = fields.ForeignKeyField(
        "models.Profile", related_name="sent_messages", on_delete=fields.CASCADE
    )
    receiver = fields.ForeignKeyField(
        "models.Profile", related_name="received_messages", on_delete=fields.CASCADE
    )
    content = fields.TextField()
    is_read = fields.BooleanField(default=False)

    class Meta:  # type: ignore
        table = "messages"
        ordering = ["created_at"]
