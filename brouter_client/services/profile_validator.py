# brouter_client/services/profile_validator.py
import re

from brouter_client.core.exceptions import InvalidProfile

# Profile names end up both in a query string and in a profile file name
# (<profile>.brf), so only characters safe in both are accepted.
PROFILE_PATTERN = r"[A-Za-z0-9_-]{1,64}"


class ProfileValidator:
    """
    Checks routing-profile names such as "trekking" or "fastbike-lowtraffic".
    """

    def __init__(self, pattern: str = PROFILE_PATTERN) -> None:
        self._pattern = re.compile(pattern)

    def is_valid(self, profile: str) -> bool:
        return isinstance(profile, str) and self._pattern.fullmatch(profile) is not None

    def validate(self, profile: str) -> str:
        """
        Return the profile name unchanged, or raise InvalidProfile.
        """
        if not self.is_valid(profile):
            raise InvalidProfile(profile)
        return profile


_default_validator = ProfileValidator()


def validate_profile(profile: str) -> str:
    return _default_validator.validate(profile)
