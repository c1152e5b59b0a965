from .attach import Attacher
from .launch import Launcher, join_and_exec
