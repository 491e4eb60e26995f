"""Defines ResourceRecord, the text form exchanged with record advertisers."""

import dataclasses

# Every advertised record uses this TTL. It is policy, not per-service data.
RECORD_TTL_SECONDS = 60

RECORD_CLASS_IN = "IN"


@dataclasses.dataclass(frozen=True)
class ResourceRecord:
    """One DNS resource record in zone-file text form.

    `str(record)` yields `<owner> <ttl> IN <type> <rdata>`, the line format
    accepted by `RecordAdvertiser.publish()` and `unpublish()`.
    """

    owner: str
    rtype: str
    rdata: str
    ttl: int = RECORD_TTL_SECONDS
    rclass: str = RECORD_CLASS_IN

    def __str__(self) -> str:
        return f"{self.owner} {self.ttl} {self.rclass} {self.rtype} {self.rdata}"

    @classmethod
    def parse(cls, text: str) -> "ResourceRecord":
        """Parses a record line produced by `str()`.

        Args:
            text: A line of the form `<owner> <ttl> <class> <type> <rdata>`.
                The rdata is everything after the type, kept verbatim.

        Returns:
            The parsed record.

        Raises:
            ValueError: If the line has too few fields or a non-integer TTL.
        """
        fields = text.strip().split(None, 4)
        if len(fields) != 5:
            raise ValueError(f"Malformed resource record: {text!r}")

        owner, ttl, rclass, rtype, rdata = fields
        try:
            ttl_value = int(ttl)
        except ValueError as e:
            raise ValueError(f"Malformed TTL in resource record: {text!r}") from e
        if ttl_value < 0:
            raise ValueError(f"Negative TTL in resource record: {text!r}")

        return cls(
            owner=owner,
            rtype=rtype.upper(),
            rdata=rdata,
            ttl=ttl_value,
            rclass=rclass.upper(),
        )
