"""A synchronous client for the redis text protocol."""

import logging

from redisline.client import *
from redisline.codec import *
from redisline.command import *
from redisline.connection import *
from redisline.error import *
from redisline.pipeline import *
from redisline.reply import *

logging.getLogger(__name__).addHandler(logging.NullHandler())
