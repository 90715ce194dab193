import os

import tomli

from peppercommit.lib.crypto import DEFAULT_PEPPER_BYTES, ENCODING_HEX, ENCODINGS, MIN_PEPPER_BYTES
from peppercommit.lib.store import DEFAULT_LOCK_TIMEOUT

DEFAULT_STORE_DIRECTORY="."
DEFAULT_STORE_FILENAME="secrets.json"

class Config:
    """
    Represents a peppercommit configuration object.
    """

    def __init__(self, file_path: str = None) -> None:
        """ Parses a TOML-formatted config file
            and populates the underlying config dict.
            With no file path, every setting takes its default.
        """

        self.config_dict = dict()
        self.pepper_length = DEFAULT_PEPPER_BYTES
        self.commitment_encoding = ENCODING_HEX
        self.store_directory = DEFAULT_STORE_DIRECTORY
        self.store_filename = DEFAULT_STORE_FILENAME
        self.lock_timeout = DEFAULT_LOCK_TIMEOUT

        if file_path != None:
            with open(file_path, "rb") as f:
                self.config_dict = tomli.load(f)

        # pepper settings, if any
        pepper_dict = self.config_dict.get("pepper")

        if pepper_dict != None:
            length = pepper_dict.get("length", DEFAULT_PEPPER_BYTES)
            if not isinstance(length, int) or length < MIN_PEPPER_BYTES:
                raise ValueError(f"pepper.length must be an integer >= {MIN_PEPPER_BYTES}")
            self.pepper_length = length

        # commitment display/storage encoding, if any
        commitment_dict = self.config_dict.get("commitment")

        if commitment_dict != None:
            encoding = commitment_dict.get("encoding", ENCODING_HEX)
            if encoding not in ENCODINGS:
                raise ValueError(f"commitment.encoding must be one of {', '.join(ENCODINGS)}")
            self.commitment_encoding = encoding

        # where secrets are written, if specified
        store_dict = self.config_dict.get("store")

        if store_dict != None:
            self.store_directory = store_dict.get("directory", DEFAULT_STORE_DIRECTORY)
            self.store_filename = store_dict.get("filename", DEFAULT_STORE_FILENAME)

            timeout = store_dict.get("lock-timeout", DEFAULT_LOCK_TIMEOUT)
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0:
                raise ValueError("store.lock-timeout must be a non-negative number")
            self.lock_timeout = float(timeout)

    def get_pepper_length(self) -> int:
        """ Returns the number of random bytes drawn per pepper.
        """
        return self.pepper_length

    def get_commitment_encoding(self) -> str:
        """ Returns "hex" or "base64".
        """
        return self.commitment_encoding

    def get_secret_file(self) -> str:
        """ Returns the default path the commit command writes to.
        """
        return os.path.join(self.store_directory, self.store_filename)

    def get_lock_timeout(self) -> float:
        return self.lock_timeout
