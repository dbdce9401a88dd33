#!/usr/bin/python3
'''
  Calculate the S3 ETag of a file, or check it against an expected ETag.

  s3etag -c 16 data/GeomapKarekare.tif
  s3etag -e '"1f2ec1ae6e884967d08e3c0d7c31f160-3"' data/GeomapKarekare.tif
  s3etag --auth conf/auth.json -e s3://bucket/Write_Test/GeomapKarekare.tif data/GeomapKarekare.tif
'''
import os
import sys
import json
import argparse
import botocore.exceptions

from etag import CHUNK_SIZE, InvalidConfiguration, check_chunk_size, compute, format_etag
from s3_source import S3Source, is_s3_uri, strip_etag

MB = 1024 * 1024

prog = 's3etag'


def json_load(filename):
  try:
    with open( filename ) as f:
      return json.load(f)
  except (OSError, ValueError) as e:
    print( "{}: json_load({}): ".format(prog, filename), e, file=sys.stderr )
    sys.exit(2)


def thread_count(value):
  threads = int(value)
  if threads < 1:
    raise argparse.ArgumentTypeError('must be at least 1, not {}'.format(value))
  return threads


def parse_args(argv=None):
  parser = argparse.ArgumentParser(prog=prog, description='Calculate S3 ETag for multipart uploads')
  parser.add_argument('-c', '--chunk-size', type=int, default=CHUNK_SIZE // MB, help='Chunk size in MB (default: %(default)s)')
  parser.add_argument('-e', '--etag', default=None, help='Expected ETag to verify against, or s3://bucket/key to use that object\'s ETag')
  parser.add_argument('-t', '--threads', type=thread_count, default=None, help='Hash parts on this many threads. Reads the whole file into memory.')
  parser.add_argument('--auth', default=None, help='JSON file with s3_keys {access_key_id, secret_access_key} and endpoint')
  parser.add_argument('--endpoint', default=None, help='S3 endpoint URL, overrides the auth file')
  parser.add_argument('-d', '--debug', action='count', default=0, help='Debug output, repeat for more')
  parser.add_argument('file', help='File path, or s3://bucket/key')
  return parser.parse_args(argv)


def s3_source(args):
  s3_keys = None
  s3_endpoint = None
  if args.auth is not None:
    auth = json_load(args.auth)
    if not isinstance(auth, dict):
      raise ValueError('{}: expected a JSON object'.format(args.auth))
    s3_keys = auth.get('s3_keys')
    if s3_keys is not None and (not isinstance(s3_keys, dict) or 'access_key_id' not in s3_keys or 'secret_access_key' not in s3_keys):
      raise ValueError('{}: s3_keys needs access_key_id and secret_access_key'.format(args.auth))
    s3_endpoint = auth.get('endpoint')
  if args.endpoint is not None:
    s3_endpoint = args.endpoint
  return S3Source(s3_keys=s3_keys, s3_endpoint=s3_endpoint, debug=args.debug)


def calculate(source, uri, chunk_size, threads=None):
  if threads is not None and threads > 1:
    with source.open(uri) as fin:
      return compute(fin.read(), chunk_size, workers=threads)
  return source.compute(uri, chunk_size)


def main(argv=None):
  args = parse_args(argv)

  if not is_s3_uri(args.file) and not os.path.exists(args.file):
    print("{}: file not found: {}".format(prog, args.file), file=sys.stderr)
    return 2

  try:
    chunk_size = check_chunk_size(args.chunk_size * MB)
    source = s3_source(args)
    digest = calculate(source, args.file, chunk_size, args.threads)
    calculated = format_etag(digest)

    if args.etag is None:
      print(calculated)
      return 0

    if is_s3_uri(args.etag):
      expected = source.remote_etag(args.etag)
    else:
      expected = strip_etag(args.etag)
  except InvalidConfiguration as e:
    print("{}: invalid chunk size {} MB: {}".format(prog, args.chunk_size, e), file=sys.stderr)
    return 2
  except (OSError, ValueError, botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as e:
    print("{}: {}: {}".format(prog, args.file, e), file=sys.stderr)
    return 2

  if args.debug > 0:
    print("{}: calculated {} expected {}".format(prog, calculated, expected), file=sys.stderr)

  if calculated == expected:
    print('TRUE')
    return 0
  print('FALSE')
  return 1


if __name__ == "__main__":
  sys.exit(main())
