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

from prometheus_client import Counter
from prometheus_client import Gauge

SUBSYSTEM = 'ldap_389ds'

# A count of -1 means the query behind that gauge failed on the last
# scrape.
FAILED = -1

# Counts read NaN until their query has run once.
UNSCRAPED = float('nan')

class ExporterMetrics(object):
   """The set of metrics published by the exporter.

   All metrics live in the given CollectorRegistry; the scraper writes
   through the set* methods while the web site reads the registry. Each
   update is atomic per metric, nothing more.
   """

   def __init__(self, registry):
      self.registry = registry

      self.users = self._gauge('users', 'Number of user accounts', ['type'])
      self.groups = self._gauge('groups', 'Number of groups')
      self.hosts = self._gauge('hosts', 'Number of hosts')
      self.hostGroups = self._gauge('hostgroups', 'Number of hostgroups')
      self.hbacRules = self._gauge('hbac_rules', 'Number of hbac rules')
      self.sudoRules = self._gauge('sudo_rules', 'Number of sudo rules')
      self.dnsZones = self._gauge('dns_zones', 'Number of dns zones')
      self.replicationConflicts = self._gauge('replication_conflicts', 'Number of ldap conflicts')
      self.replicationStatus = self._gauge('replication_status', 'Replication status by server', ['server'])
      self.up = self._gauge('up', 'Whether the last scrape could connect and bind to the directory')
      self.scrapeDuration = self._gauge('scrape_duration_seconds', 'time taken per scrape')
      self.lastScrape = self._gauge('last_scrape_timestamp_seconds', 'Unix time the last scrape finished')

      self.scrapeCount = Counter('scrape_count',
                                 'successful vs unsuccessful ldap scrape attempts',
                                 ['result'],
                                 subsystem = SUBSYSTEM,
                                 registry = registry)

      for gauge in (self.groups, self.hosts, self.hostGroups, self.hbacRules,
                    self.sudoRules, self.dnsZones, self.replicationConflicts):
         gauge.set(UNSCRAPED)

   def _gauge(self, name, documentation, labelnames = ()):
      return Gauge(name,
                   documentation,
                   labelnames,
                   subsystem = SUBSYSTEM,
                   registry = self.registry)

   def setUsers(self, kind, value):
      self.users.labels(kind).set(value)

   def setGroups(self, value):
      self.groups.set(value)

   def setHosts(self, value):
      self.hosts.set(value)

   def setHostGroups(self, value):
      self.hostGroups.set(value)

   def setHbacRules(self, value):
      self.hbacRules.set(value)

   def setSudoRules(self, value):
      self.sudoRules.set(value)

   def setDnsZones(self, value):
      self.dnsZones.set(value)

   def setReplicationConflicts(self, value):
      self.replicationConflicts.set(value)

   def setReplicationStatus(self, host, value):
      self.replicationStatus.labels(host).set(value)

   def setUp(self, value):
      self.up.set(value)

   def recordScrape(self, success, duration, timestamp):
      self.scrapeCount.labels('ok' if success else 'fail').inc()
      self.scrapeDuration.set(duration)
      self.lastScrape.set(timestamp)
