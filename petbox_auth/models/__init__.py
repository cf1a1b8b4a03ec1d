from .user import Gender, SocialProviderName, User, UserRole, UserSocialLink

__all__ = [
    "Gender",
    "SocialProviderName",
    "User",
    "UserRole",
    "UserSocialLink",
]
