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

from ldaptor.protocols import pureldap
from ldaptor.protocols.ldap.ldapclient import LDAPClient
from ldaptor.protocols.ldap.ldapsyntax import LDAPEntry

from twisted.internet import defer
from twisted.internet.endpoints import clientFromString
from twisted.internet.protocol import Factory
from twisted.logger import Logger

SCOPE_BASE = pureldap.LDAP_SCOPE_baseObject
SCOPE_ONELEVEL = pureldap.LDAP_SCOPE_singleLevel
SCOPE_SUBTREE = pureldap.LDAP_SCOPE_wholeSubtree

REPLICA_DN = 'cn=replica,cn={},cn=mapping tree,cn=config'

class LDAPFactory(Factory):
   noisy = False

   def buildProtocol(self, address):
      return LDAPClient()

def baseSuffix(domain):
   """example.org -> dc=example,dc=org"""
   return ','.join('dc={}'.format(label) for label in domain.split('.'))

def replicaDN(suffix):
   escaped = suffix.replace('=', '\\=').replace(',', '\\,')
   return REPLICA_DN.format(escaped)

def text(value):
   if isinstance(value, bytes):
      return value.decode('utf-8', 'replace')
   return str(value)

def firstValue(entry, attribute, default = None):
   """Return the first value of an attribute of a search result entry,
   as text, or default when the entry doesn't carry it."""
   if attribute not in entry:
      return default
   for value in entry[attribute]:
      return text(value)
   return default

class DirectoryConnection(object):
   log = Logger()

   def __init__(self, client):
      self.client = client
      self.closed = False

   def search(self, base, filterText, scope, attributes):
      entry = LDAPEntry(self.client, base)
      return entry.search(filterText = filterText,
                          attributes = attributes,
                          scope = scope)

   def close(self):
      if self.closed:
         return
      self.closed = True
      if self.client.connected:
         self.client.unbind()
      if self.client.transport is not None:
         self.client.transport.loseConnection()

def connect(reactor, client, binddn, bindpw):
   """Connect to the directory at the client endpoint description and
   bind, firing with a DirectoryConnection."""
   return bind(clientFromString(reactor, client), binddn, bindpw)

@defer.inlineCallbacks
def bind(endpoint, binddn, bindpw):
   protocol = yield endpoint.connect(LDAPFactory())
   connection = DirectoryConnection(protocol)
   try:
      yield protocol.bind(binddn, bindpw)
   except Exception:
      connection.close()
      raise
   connection.log.debug('bound as {binddn}', binddn = binddn)
   return connection
