from marshmallow import Schema, fields, pre_load, validates, validates_schema, ValidationError, validate, EXCLUDE


def _norm(v):
    return v.strip().lower() if isinstance(v, str) else v


def _check_password(value):
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")


class UserCreateSchema(Schema):
    full_name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    username = fields.String(required=True, validate=validate.Regexp(
        r"^[a-z0-9_.-]{3,64}$", error="Username must be 3-64 characters of a-z, 0-9, '_', '.', '-'."))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            for key in ("email", "username"):
                if key in data:
                    data[key] = _norm(data[key])
            if isinstance(data.get("full_name"), str):
                data["full_name"] = data["full_name"].strip()
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(load_default=None)
    email = fields.String(load_default=None)
    password = fields.String(load_default=None)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = {k: (_norm(v) if k in ("email", "username") else v) for k, v in data.items()}
        return data

    @validates_schema
    def require_fields(self, data, **kwargs):
        if not (data.get("username") or data.get("email")):
            raise ValidationError("Username or email required", field_name="username")
        if not data.get("password"):
            raise ValidationError("Password required", field_name="password")


class AccountUpdateSchema(Schema):
    full_name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm(data["email"])
        return data


class PasswordChangeSchema(Schema):
    old_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    full_name = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class ChannelSummarySchema(Schema):
    id = fields.String()
    username = fields.String()
    full_name = fields.String(allow_none=True)


class ChannelProfileSchema(ChannelSummarySchema):
    email = fields.String()
    subscribers_count = fields.Integer()
    channels_subscribed_to_count = fields.Integer()
    is_subscribed = fields.Boolean()
