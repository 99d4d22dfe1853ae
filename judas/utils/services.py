"""
Well-known TCP ports and their service names
"""

# Swept by a port scan, in launch order
WELL_KNOWN_PORTS = [
    20, 21, 22, 23, 25, 53, 80, 81, 88, 110, 115, 135, 139, 143, 194, 389, 443,
    445, 465, 515, 543, 544, 548, 554, 587, 631, 636, 646, 873, 902, 990, 993,
    995, 1080, 1194, 1433, 1521, 1723, 2049, 2082, 2083, 2086, 2087, 2095, 2096,
    3306, 3389, 4500, 5060, 5061, 5432, 5500, 5800, 5900, 5938, 6000, 6665, 6669,
    6697, 7070, 8000, 8008, 8080, 8081, 8443, 8888, 9000, 9090, 9100, 9418, 10000,
]

PORT_SERVICES = {
    20: 'ftp-data',
    21: 'ftp',
    22: 'ssh',
    23: 'telnet',
    25: 'smtp',
    53: 'dns',
    80: 'http',
    81: 'http-alt',
    88: 'kerberos',
    110: 'pop3',
    115: 'sftp',
    135: 'msrpc',
    139: 'netbios-ssn',
    143: 'imap',
    194: 'irc',
    389: 'ldap',
    443: 'https',
    445: 'smb',
    465: 'smtps',
    515: 'printer',
    543: 'klogin',
    544: 'kshell',
    548: 'afp',
    554: 'rtsp',
    587: 'submission',
    631: 'ipp',
    636: 'ldaps',
    646: 'ldp',
    873: 'rsync',
    902: 'vmware-auth',
    990: 'ftps',
    993: 'imaps',
    995: 'pop3s',
    1080: 'socks',
    1194: 'openvpn',
    1433: 'mssql',
    1521: 'oracle',
    1723: 'pptp',
    2049: 'nfs',
    2082: 'cpanel',
    2083: 'cpanel-ssl',
    2086: 'whm',
    2087: 'whm-ssl',
    2095: 'webmail',
    2096: 'webmail-ssl',
    3306: 'mysql',
    3389: 'rdp',
    4500: 'ipsec-nat-t',
    5060: 'sip',
    5061: 'sips',
    5432: 'postgresql',
    5500: 'vnc-http',
    5800: 'vnc-http',
    5900: 'vnc',
    5938: 'teamviewer',
    6000: 'x11',
    6379: 'redis',
    6665: 'irc',
    6666: 'irc',
    6667: 'irc',
    6668: 'irc',
    6669: 'irc',
    6697: 'ircs',
    7070: 'rtsp-alt',
    8000: 'http-alt',
    8008: 'http-proxy',
    8080: 'http-proxy',
    8081: 'http-proxy',
    8443: 'https-alt',
    8888: 'http-alt',
    9000: 'http-alt',
    9090: 'http-console',
    9100: 'jetdirect',
    9418: 'git',
    10000: 'webmin',
    27017: 'mongodb',
}


def service_name(port: int) -> str:
    """Identify service by well-known port number"""
    return PORT_SERVICES.get(port, 'unknown')
