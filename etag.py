#!/usr/bin/env python3
'''
  S3 ETag calculation.

  Objects uploaded in a single PUT get the MD5 of their content as ETag.
  Multipart uploads get the MD5 of the concatenated per-part MD5 digests,
  followed by '-<number of parts>'.
'''
import hashlib
import collections
from concurrent.futures import ThreadPoolExecutor

CHUNK_SIZE = 8388608 #8M, default multipart chunk size of the aws cli and boto3
MD5_EMPTY = hashlib.md5().digest()


class InvalidConfiguration(ValueError):
  '''
    Raised for a chunk size that can't be used to partition the input.
  '''


class Digest(collections.namedtuple('Digest', ['hash', 'parts'])):
  '''
    hash:  raw MD5 bytes
    parts: number of parts hashed to build hash, or None for a single part object
  '''
  __slots__ = ()

  def hash_hex(self):
    return self.hash.hex()

  def __str__(self):
    return format_etag(self)


def check_chunk_size(chunk_size):
  if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
    raise InvalidConfiguration('chunk size must be a positive number of bytes, not {!r}'.format(chunk_size))
  return chunk_size


def read_in_chunks(file_object, chunk_size):
  '''
    Iterator to read a file chunk by chunk.

    file_object: file opened by caller
  '''
  while True:
    data = file_object.read(chunk_size)
    if not data:
      break
    yield data


def etag(md5_array):
  '''
    Calculate objects ETag from array of chunk's MD5 sums

    md5_array: raw md5 digest of each chunk, in chunk order
  '''
  if len(md5_array) < 1:
    return Digest(MD5_EMPTY, None)

  if len(md5_array) == 1:
    return Digest(md5_array[0], None)

  digests_md5 = hashlib.md5(b''.join(md5_array))
  return Digest(digests_md5.digest(), len(md5_array))


def format_etag(digest):
  if digest.parts is None:
    return digest.hash.hex()
  return '{}-{}'.format(digest.hash.hex(), digest.parts)


def _md5(chunk):
  return hashlib.md5(chunk).digest()


def compute(data, chunk_size=CHUNK_SIZE, workers=None):
  '''
    ETag S3 would give data, if uploaded in parts of chunk_size bytes.

    data:       bytes-like object
    chunk_size: part size in bytes
    workers:    hash the parts on this many threads. Order of the parts is kept.
  '''
  check_chunk_size(chunk_size)
  view = memoryview(data)
  if view.nbytes <= chunk_size:
    return etag([_md5(view)])

  view = view.cast('B')
  chunks = [view[i:i + chunk_size] for i in range(0, len(view), chunk_size)]
  if workers is not None and workers > 1:
    with ThreadPoolExecutor(max_workers=workers) as pool:
      return etag(list(pool.map(_md5, chunks)))
  return etag([_md5(c) for c in chunks])


def verify(data, chunk_size, expected):
  '''
    True if data, uploaded in parts of chunk_size bytes, would have the ETag expected.
    The comparison is exact, so expected must be unquoted and lowercase.
  '''
  return format_etag(compute(data, chunk_size)) == expected


class ETagHash:
  '''
    Incremental ETag calculation, with the same interface as a hashlib object.
    Data can be fed in pieces of any size; parts are cut every chunk_size bytes.
  '''

  def __init__(self, data=None, chunk_size=CHUNK_SIZE):
    self.chunk_size = check_chunk_size(chunk_size)
    self.md5s = []
    self.current = hashlib.md5()
    self.current_len = 0
    self.total_bytes = 0
    if data is not None:
      self.update(data)

  @property
  def chunk_count(self):
    ''' Parts seen so far, counting a partly filled one '''
    return len(self.md5s) + (1 if self.current_len > 0 else 0)

  def update(self, data):
    view = memoryview(data).cast('B')
    self.total_bytes += len(view)
    while len(view) > 0:
      take = min(len(view), self.chunk_size - self.current_len)
      self.current.update(view[:take])
      self.current_len += take
      view = view[take:]
      if self.current_len == self.chunk_size:
        self.md5s.append(self.current.digest())
        self.current = hashlib.md5()
        self.current_len = 0

  def digest(self):
    md5s = list(self.md5s)
    if self.current_len > 0:
      md5s.append(self.current.digest())
    return etag(md5s)

  def hexdigest(self):
    return format_etag(self.digest())

  def copy(self):
    other = ETagHash.__new__(ETagHash)
    other.chunk_size = self.chunk_size
    other.md5s = list(self.md5s)
    other.current = self.current.copy()
    other.current_len = self.current_len
    other.total_bytes = self.total_bytes
    return other


def compute_file(file_object, chunk_size=CHUNK_SIZE):
  '''
    ETag of a binary file, read chunk_size bytes at a time.

    file_object: file opened by caller
  '''
  etag_hash = ETagHash(chunk_size=chunk_size)
  for chunk in read_in_chunks(file_object, chunk_size):
    etag_hash.update(chunk)
  return etag_hash.digest()
