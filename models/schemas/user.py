from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates

PASSWORD_MIN_LENGTH = 6


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _check_password(value):
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long.")


def _alias_name(data: dict) -> dict:
    """Accept ``display_name`` as an alias of ``name``."""
    if "name" not in data and "display_name" in data:
        data["name"] = data.pop("display_name")
    if isinstance(data.get("name"), str):
        data["name"] = data["name"].strip()
    return data


class RequestSchema(Schema):
    """Auth request bodies: extra form fields (confirmPassword, allDevices, ...) are dropped."""

    class Meta:
        unknown = EXCLUDE


class SignUpSchema(RequestSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            data = _alias_name(data)
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class SignInSchema(RequestSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class RefreshTokenSchema(RequestSchema):
    refresh_token = fields.String(data_key="refreshToken", load_default=None)


class ForgotPasswordSchema(RequestSchema):
    email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class ResetTokenSchema(RequestSchema):
    token = fields.String(required=True, validate=validate.Length(min=1))
    user_id = fields.String(data_key="userId", required=True, validate=validate.Length(min=1))


class ResetPasswordSchema(ResetTokenSchema):
    new_password = fields.String(data_key="newPassword", required=True, load_only=True)

    @validates("new_password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class ProfileUpdateSchema(Schema):
    name = fields.String(validate=validate.Length(min=1, max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        if any(k in data for k in ("password", "newPassword", "password_hash")):
            raise ValidationError("Password cannot be changed through this endpoint.", field_name="password")
        return _alias_name(dict(data))


class TokenVerifySchema(RequestSchema):
    token = fields.String(required=True, validate=validate.Length(min=1))


class UserOutSchema(Schema):
    id = fields.String()
    email = fields.String()
    name = fields.String(attribute="display_name")
    is_verified = fields.Boolean(data_key="isVerified")
    created_at = fields.DateTime(data_key="createdAt")


class TokenPairOutSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    token_type = fields.String(data_key="tokenType")
    expires_in = fields.Integer(data_key="expiresIn")
