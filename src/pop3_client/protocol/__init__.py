"""Protocol layer: commands, reply framing, reply parsing and session state."""

from .commands import Command, Verb, expects_multiline, serialize
from .framing import Receive, Response, Send, read_response
from .parser import ListingEntry, MailboxStat
from .session import Session, SessionState
