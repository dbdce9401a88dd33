#!/usr/bin/python3
import sys
import boto3
from smart_open import open
from smart_open.compression import NO_COMPRESSION

from etag import CHUNK_SIZE, compute_file

S3_SCHEME = 's3://'


def is_s3_uri(uri):
  return uri.startswith(S3_SCHEME)


def split_s3_uri(uri):
  '''
    's3://bucket/some/key' -> ('bucket', 'some/key')
  '''
  if not is_s3_uri(uri):
    raise ValueError('not an S3 URI: {}'.format(uri))
  bucket, _, key = uri[len(S3_SCHEME):].partition('/')
  if not bucket or not key:
    raise ValueError('S3 URI needs a bucket and a key: {}'.format(uri))
  return bucket, key


def strip_etag(etag):
  ''' S3 returns ETags in double quotes. Only the quotes are removed. '''
  return etag.strip('"')


class S3Source:
  def __init__(self, s3_keys=None, s3_endpoint=None, region_name='us-east-1', debug=0):
    '''
      Cache s3 credentials for later use.

      s3_keys:      S3 key ID and secret. boto3's default credential chain is used if None.
      s3_endpoint:  URI for the S3 server. AWS if None.
      debug:        Debug output increases with this value
    '''
    if s3_keys is not None:
      self.s3_session = boto3.Session(
           aws_access_key_id=s3_keys['access_key_id'],
           aws_secret_access_key=s3_keys['secret_access_key']
      )
    else:
      self.s3_session = boto3.Session()

    self.s3_connection = self.s3_session.client(
        's3',
        aws_session_token=None,
        region_name=region_name,
        use_ssl=True,
        endpoint_url=s3_endpoint,
        config=None
    )
    self.s3_endpoint = s3_endpoint
    self.debug = debug

  def open(self, uri):
    '''
      Open a local file, or an s3://bucket/key object, for binary reads.
    '''
    if is_s3_uri(uri):
      split_s3_uri(uri) #Raises for a URI without bucket or key
      return open(uri, 'rb', transport_params={'client': self.s3_connection}, compression=NO_COMPRESSION)
    return open(uri, 'rb', compression=NO_COMPRESSION)

  def compute(self, uri, chunk_size=CHUNK_SIZE):
    '''
      ETag of a local file or S3 object, as if uploaded in parts of chunk_size bytes.
    '''
    if self.debug > 0:
      print('compute({}): chunk size {}'.format(uri, chunk_size), file=sys.stderr)
    with self.open(uri) as fin:
      digest = compute_file(fin, chunk_size)
    if self.debug > 1:
      print('compute({}): {} part(s)'.format(uri, digest.parts or 1), file=sys.stderr)
    return digest

  def head_etag(self, bucket, key):
    '''
      ETag of the object in the store, without the surrounding quotes.
    '''
    head = self.s3_connection.head_object(Bucket=bucket, Key=key)
    if self.debug > 1:
      print('head_etag(s3://{}/{}): {}'.format(bucket, key, head['ETag']), file=sys.stderr)
    return strip_etag(head['ETag'])

  def remote_etag(self, uri):
    bucket, key = split_s3_uri(uri)
    return self.head_etag(bucket, key)
