# -*- mode: python; coding: utf-8 -*-

# Copyright © 2017 by Jeffrey C. Ollie <jeff@ocjtech.us>

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful, but
# WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see
# <http://www.gnu.org/licenses/>.

from collections import namedtuple

from twisted.internet import defer
from twisted.logger import Logger
from twisted.python.failure import Failure

from ds389_exporter import directory
from ds389_exporter.directory import SCOPE_BASE
from ds389_exporter.directory import SCOPE_ONELEVEL
from ds389_exporter.directory import SCOPE_SUBTREE
from ds389_exporter.metrics import FAILED

SUBORDINATES = 'subordinates'
ENTRIES = 'entries'
REPLICATION = 'replication'

Query = namedtuple('Query', ['name', 'base', 'filterText', 'scope', 'attributes', 'kind', 'update', 'labels'])

ANY = '(objectClass=*)'

QUERIES = (
   Query('active users', 'cn=users,cn=accounts,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setUsers', ('active',)),
   Query('staged users', 'cn=staged users,cn=accounts,cn=provisioning,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setUsers', ('staged',)),
   Query('preserved users', 'cn=deleted users,cn=accounts,cn=provisioning,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setUsers', ('preserved',)),
   Query('groups', 'cn=groups,cn=accounts,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setGroups', ()),
   Query('hosts', 'cn=computers,cn=accounts,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setHosts', ()),
   Query('hostgroups', 'cn=hostgroups,cn=accounts,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setHostGroups', ()),
   Query('sudo rules', 'cn=sudorules,cn=sudo,{suffix}', ANY,
         SCOPE_BASE, ('numSubordinates',), SUBORDINATES, 'setSudoRules', ()),
   Query('hbac rules', 'cn=hbac,{suffix}', '(objectClass=ipahbacrule)',
         SCOPE_ONELEVEL, ('ipaUniqueID',), ENTRIES, 'setHbacRules', ()),
   Query('dns zones', 'cn=dns,{suffix}', '(|(objectClass=idnszone)(objectClass=idnsforwardzone))',
         SCOPE_ONELEVEL, ('idnsName',), ENTRIES, 'setDnsZones', ()),
   Query('ldap conflicts', '{suffix}', '(nsds5ReplConflict=*)',
         SCOPE_SUBTREE, ('nsds5ReplConflict',), ENTRIES, 'setReplicationConflicts', ()),
   Query('replication agreements', '{replica}', '(objectClass=nsds5replicationagreement)',
         SCOPE_ONELEVEL, ('nsDS5ReplicaHost', 'nsds5replicaLastUpdateStatus'), REPLICATION, None, ()),
)

HEALTHY = 'healthy'
UNHEALTHY = 'unhealthy'
UNKNOWN = 'unknown'

# First match wins.
REPLICATION_STATUS_RULES = (
   # Error (0) Replica acquired successfully: Incremental update succeeded
   ('Incremental update succeeded', HEALTHY),
   # Error (-1) Problem connecting to replica - LDAP error: Can't contact LDAP server (connection error)
   ('Problem connecting to replica', UNHEALTHY),
   # Error (1) Can't acquire busy replica
   ("Can't acquire busy replica", HEALTHY),
)

def classifyReplicationStatus(status):
   for pattern, tag in REPLICATION_STATUS_RULES:
      if pattern in status:
         return tag
   return UNKNOWN

def replicationStatusValue(tag):
   if tag == HEALTHY:
      return 1
   return 0

class QueryError(Exception):
   pass

class MissingAttributeError(QueryError):
   pass

class ScrapeError(Exception):
   """All of the sub-query failures of one scrape."""

   def __init__(self, failures):
      self.failures = list(failures)
      Exception.__init__(self, '{} errors occurred: {}'.format(
         len(self.failures),
         '; '.join(f.getErrorMessage() for f in self.failures)))

class Scraper(object):
   """Run scrape cycles against one directory and update ExporterMetrics.

   Holds no state between cycles besides its configuration; the base
   suffix is worked out again every time.
   """

   log = Logger()

   def __init__(self, reactor, metrics, client, binddn, bindpw, domain,
                timeout = None, connector = directory.connect):
      self.reactor = reactor
      self.metrics = metrics
      self.client = client
      self.binddn = binddn
      self.bindpw = bindpw
      self.domain = domain
      self.timeout = timeout
      self.connector = connector
      self.runners = {
         SUBORDINATES: self.subordinatesQuery,
         ENTRIES: self.countQuery,
         REPLICATION: self.replicationQuery,
      }

   def scrape(self):
      """Run one scrape cycle.

      The returned Deferred fires with True or False once the cycle is
      over and the outcome has been recorded; it never fails.
      """
      self.log.debug('Starting metrics scrape')
      start = self.reactor.seconds()
      d = self.scrapeAll()
      if self.timeout:
         d.addTimeout(self.timeout, self.reactor)
      d.addCallbacks(self.scrapeSucceeded, self.scrapeFailed)
      d.addCallback(self.scrapeFinished, start)
      return d

   def scrapeSucceeded(self, result):
      return True

   def scrapeFailed(self, failure):
      self.log.error('Scrape failed, error is: {error}', error = failure.getErrorMessage())
      return False

   def scrapeFinished(self, success, start):
      now = self.reactor.seconds()
      elapsed = max(now - start, 0.0)
      self.metrics.recordScrape(success, elapsed, now)
      self.log.info('Scrape completed in {elapsed:f} seconds', elapsed = elapsed)
      return success

   @defer.inlineCallbacks
   def scrapeAll(self):
      suffix = directory.baseSuffix(self.domain)

      try:
         connection = yield self.connector(self.reactor, self.client, self.binddn, self.bindpw)
      except Exception:
         self.metrics.setUp(0)
         raise
      self.metrics.setUp(1)

      failures = []
      try:
         for query in QUERIES:
            yield self.runQuery(connection, query, suffix, failures)
      finally:
         connection.close()

      if failures:
         raise ScrapeError(failures)

   @defer.inlineCallbacks
   def runQuery(self, connection, query, suffix, failures):
      """Run one query from the table and publish its result.

      A failure of the query is appended to failures instead of
      being raised; a failed count query publishes FAILED.
      """
      self.log.debug('getting {query}', query = query.name)
      base = query.base.format(suffix = suffix, replica = directory.replicaDN(suffix))
      try:
         value = yield self.runners[query.kind](connection, query, base)
      except defer.CancelledError:
         raise
      except Exception:
         failure = Failure()
         self.log.warn('{query} query failed for {base}: {error}',
                       query = query.name, base = base, error = failure.getErrorMessage())
         failures.append(failure)
         value = FAILED

      if query.update is not None:
         getattr(self.metrics, query.update)(*(query.labels + (value,)))

   @defer.inlineCallbacks
   def subordinatesQuery(self, connection, query, base):
      entries = yield connection.search(base, query.filterText, query.scope, query.attributes)
      attribute = query.attributes[0]
      for entry in entries:
         value = directory.firstValue(entry, attribute)
         if value is None:
            continue
         try:
            return float(value)
         except ValueError:
            raise MissingAttributeError('{} value {!r} for {} is not a number'.format(attribute, value, base))
      raise MissingAttributeError('No entries contain {} for {} ({})'.format(attribute, base, query.filterText))

   @defer.inlineCallbacks
   def countQuery(self, connection, query, base):
      entries = yield connection.search(base, query.filterText, query.scope, query.attributes)
      return float(len(entries))

   @defer.inlineCallbacks
   def replicationQuery(self, connection, query, base):
      hostAttribute, statusAttribute = query.attributes
      entries = yield connection.search(base, query.filterText, query.scope, query.attributes)
      for entry in entries:
         host = directory.firstValue(entry, hostAttribute, '')
         status = directory.firstValue(entry, statusAttribute, '')
         tag = classifyReplicationStatus(status)
         if tag == UNKNOWN:
            self.log.warn('Unknown replication status host: {host}, status: {status}',
                          host = host, status = status)
         self.metrics.setReplicationStatus(host, replicationStatusValue(tag))
